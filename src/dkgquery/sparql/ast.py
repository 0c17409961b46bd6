"""
Structured SPARQL query representation.

Terms are plain rdflib terms (``Variable``, ``URIRef``, ``BNode`` and
``Literal``).  Everything above the term level is a small dataclass:
expressions (:class:`Operation`, :class:`FunctionCall`,
:class:`Aggregate`), property paths (:class:`PropertyPath`), graph
patterns (:class:`BgpPattern`, :class:`FilterPattern`, ...) and the query
itself (:class:`SparqlQuery`).

Queries are built by :func:`dkgquery.sparql.parser.parse_sparql` or
programmatically with :func:`create_simple_select_query`, and written back
to text by :func:`dkgquery.sparql.serializer.serialize_query`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, ClassVar, Iterator, Union

from rdflib import BNode, Literal, URIRef, Variable
from rdflib.term import Identifier

Term = Union[Variable, URIRef, BNode, Literal]

# Operator names used by :class:`Operation` for the non built-in operators.
LOGICAL_OPERATORS = ("||", "&&")
RELATIONAL_OPERATORS = ("=", "!=", "<", ">", "<=", ">=")
ARITHMETIC_OPERATORS = ("+", "-", "*", "/")
SET_OPERATORS = ("in", "notin")
UNARY_OPERATORS = ("!", "uminus", "uplus")
PATTERN_OPERATORS = ("exists", "notexists")

# Property path kinds
PATH_ALTERNATIVE = "|"
PATH_SEQUENCE = "/"
PATH_INVERSE = "^"
PATH_NEGATED = "!"
PATH_MODIFIERS = ("?", "*", "+")


# ── Expressions ──────────────────────────────────────────────────────────


@dataclass
class PropertyPath:
    """A property path in predicate position.

    ``kind`` is ``|`` (alternative), ``/`` (sequence), ``^`` (inverse),
    ``!`` (negated property set) or one of the modifiers ``? * +``.
    Unary kinds carry exactly one item.
    """

    kind: str
    items: list[Any] = field(default_factory=list)


@dataclass
class Operation:
    """An operator application or built-in call.

    ``operator`` is one of the symbolic operators (``||``, ``&&``, ``=``,
    ``+``, ``!``, ``uminus``, ``in``, ...) or the lowercase name of a
    built-in function (``str``, ``contains``, ``regex``, ``exists``, ...).
    For ``exists``/``notexists`` the single argument is a
    :class:`GroupPattern`.
    """

    operator: str
    args: list[Any] = field(default_factory=list)


@dataclass
class FunctionCall:
    """A call to an IRI-named extension function or cast."""

    function: URIRef
    args: list[Any] = field(default_factory=list)
    distinct: bool = False


@dataclass
class Aggregate:
    """An aggregate expression. ``expression`` is ``"*"`` for ``COUNT(*)``."""

    aggregation: str
    expression: Any
    distinct: bool = False
    separator: str | None = None


@dataclass
class ProjectedExpression:
    """A ``(expression AS ?variable)`` entry of a SELECT clause."""

    expression: Any
    variable: Variable


@dataclass
class Ordering:
    """One ORDER BY condition."""

    expression: Any
    descending: bool = False


@dataclass
class Grouping:
    """One GROUP BY condition, optionally bound to a variable."""

    expression: Any
    variable: Variable | None = None


# ── Graph patterns ───────────────────────────────────────────────────────


@dataclass
class Triple:
    """A triple pattern; ``predicate`` may be a :class:`PropertyPath`."""

    subject: Any
    predicate: Any
    object: Any


@dataclass
class BgpPattern:
    """A basic graph pattern."""

    type: ClassVar[str] = "bgp"

    triples: list[Triple] = field(default_factory=list)


@dataclass
class FilterPattern:
    type: ClassVar[str] = "filter"

    expression: Any


@dataclass
class BindPattern:
    type: ClassVar[str] = "bind"

    expression: Any
    variable: Variable


@dataclass
class GroupPattern:
    """A nested ``{ ... }`` group."""

    type: ClassVar[str] = "group"

    patterns: list[Any] = field(default_factory=list)


@dataclass
class OptionalPattern:
    type: ClassVar[str] = "optional"

    patterns: list[Any] = field(default_factory=list)


@dataclass
class MinusPattern:
    type: ClassVar[str] = "minus"

    patterns: list[Any] = field(default_factory=list)


@dataclass
class UnionPattern:
    """Alternatives joined by UNION; each alternative is a group."""

    type: ClassVar[str] = "union"

    patterns: list[GroupPattern] = field(default_factory=list)


@dataclass
class GraphPattern:
    """A ``GRAPH name { ... }`` pattern; ``name`` is a variable or IRI."""

    type: ClassVar[str] = "graph"

    name: Any
    patterns: list[Any] = field(default_factory=list)


@dataclass
class ServicePattern:
    type: ClassVar[str] = "service"

    name: Any
    patterns: list[Any] = field(default_factory=list)
    silent: bool = False


@dataclass
class ValuesPattern:
    """Inline data. Each row maps a variable name to a term, or None for UNDEF."""

    type: ClassVar[str] = "values"

    variables: list[Variable] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class SubQueryPattern:
    """A nested SELECT."""

    type: ClassVar[str] = "query"

    query: SparqlQuery


Pattern = Union[
    BgpPattern,
    FilterPattern,
    BindPattern,
    GroupPattern,
    OptionalPattern,
    MinusPattern,
    UnionPattern,
    GraphPattern,
    ServicePattern,
    ValuesPattern,
    SubQueryPattern,
]


# ── Query ────────────────────────────────────────────────────────────────


@dataclass
class SparqlQuery:
    """A parsed or programmatically built query.

    Only SELECT queries carry a full body.  Other query forms keep their
    ``query_type`` and prologue so callers can reject them.

    An empty ``variables`` list stands for ``SELECT *``.
    """

    query_type: str = "SELECT"
    variables: list[Any] = field(default_factory=list)
    where: list[Any] = field(default_factory=list)
    prefixes: dict[str, str] = field(default_factory=dict)
    base: str | None = None
    distinct: bool = False
    reduced: bool = False
    from_graphs: list[URIRef] = field(default_factory=list)
    from_named: list[URIRef] = field(default_factory=list)
    group: list[Grouping] = field(default_factory=list)
    having: list[Any] = field(default_factory=list)
    order: list[Ordering] = field(default_factory=list)
    limit: int | None = None
    offset: int | None = None
    values: ValuesPattern | None = None

    @property
    def is_select(self) -> bool:
        return self.query_type == "SELECT"

    @property
    def result_variables(self) -> list[str]:
        """Names of the projected variables, in order (empty for ``*``)."""
        names = []
        for projection in self.variables:
            if isinstance(projection, ProjectedExpression):
                names.append(str(projection.variable))
            else:
                names.append(str(projection))
        return names


# ── Helpers ──────────────────────────────────────────────────────────────


def to_term(value: str | Identifier) -> Term:
    """Turn ``?name``, ``_:label`` or an IRI string into an rdflib term.

    rdflib terms are returned unchanged.
    """
    if isinstance(value, Identifier):
        return value
    if value.startswith(("?", "$")):
        return Variable(value[1:])
    if value.startswith("_:"):
        return BNode(value[2:])
    return URIRef(value)


def create_simple_select_query(
    variables: list[str],
    triples: list[tuple[str, str, str]],
    prefixes: dict[str, str] | None = None,
) -> SparqlQuery:
    """Build a SELECT query from variable names and triple patterns.

    Args:
        variables: Projected variables, with or without the leading ``?``
        triples: ``(subject, predicate, object)`` strings; ``?x`` denotes a
            variable, anything else a full IRI
        prefixes: Optional prefix map used when serializing

    Returns:
        A :class:`SparqlQuery` with a single basic graph pattern

    Example:
        >>> q = create_simple_select_query(
        ...     ["name"], [("?s", "http://schema.org/name", "?name")]
        ... )
        >>> q.result_variables
        ['name']
    """
    projection: list[Any] = [Variable(name.lstrip("?$")) for name in variables]
    bgp = BgpPattern(
        triples=[Triple(to_term(s), to_term(p), to_term(o)) for s, p, o in triples]
    )
    return SparqlQuery(
        query_type="SELECT",
        variables=projection,
        where=[bgp],
        prefixes=dict(prefixes or {}),
    )


def bind_parameters(
    query: SparqlQuery, bindings: dict[str, Identifier | str]
) -> SparqlQuery:
    """Substitute RDF terms for variables in the WHERE clause.

    Discovery templates declare their parameters as ordinary variables
    (``?classUri``, ``?keyword``); binding replaces every occurrence in the
    graph patterns with the given term.  Plain strings are bound as
    literals.  The projection and solution modifiers are left untouched,
    so parameters must not be projected.

    Args:
        query: Template query
        bindings: Variable name (with or without ``?``) to term

    Returns:
        A new query; the template is not modified.
    """
    terms: dict[str, Identifier] = {}
    for name, value in bindings.items():
        if not isinstance(value, Identifier):
            value = Literal(value)
        terms[name.lstrip("?$")] = value
    return replace(query, where=_substitute(query.where, terms))


def _substitute(node: Any, terms: dict[str, Identifier]) -> Any:
    if isinstance(node, Variable):
        return terms.get(str(node), node)
    if isinstance(node, Identifier) or isinstance(node, str):
        return node
    if isinstance(node, list):
        return [_substitute(item, terms) for item in node]
    if isinstance(node, dict):
        return {key: _substitute(value, terms) for key, value in node.items()}
    if is_dataclass(node) and not isinstance(node, type):
        changes = {
            f.name: _substitute(getattr(node, f.name), terms) for f in fields(node)
        }
        return replace(node, **changes)
    return node


def iter_triples(patterns: list[Any]) -> Iterator[Triple]:
    """Yield every triple pattern in ``patterns``, descending into groups."""
    for pattern in patterns:
        if isinstance(pattern, BgpPattern):
            yield from pattern.triples
        elif isinstance(pattern, SubQueryPattern):
            yield from iter_triples(pattern.query.where)
        elif hasattr(pattern, "patterns"):
            yield from iter_triples(pattern.patterns)
