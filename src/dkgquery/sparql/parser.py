"""
Parse SPARQL text into a :class:`~dkgquery.sparql.ast.SparqlQuery`.

The grammar work is done by rdflib's SPARQL 1.1 parser.  This module walks
the resulting parse tree (``CompValue`` nodes) and builds the dataclass
representation, resolving prefixed names against the query prologue.

Usage:
    from dkgquery.sparql.parser import parse_sparql

    query = parse_sparql("SELECT ?s WHERE { ?s ?p ?o } LIMIT 5")
    query.limit  # 5
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pyparsing import ParseResults
from rdflib import BNode, Literal, URIRef, Variable
from rdflib.namespace import RDF
from rdflib.plugins.sparql.parser import parseQuery, parseUpdate
from rdflib.plugins.sparql.parserutils import CompValue

from .ast import (
    PATH_ALTERNATIVE,
    PATH_INVERSE,
    PATH_NEGATED,
    PATH_SEQUENCE,
    Aggregate,
    BgpPattern,
    BindPattern,
    FilterPattern,
    FunctionCall,
    GraphPattern,
    GroupPattern,
    Grouping,
    MinusPattern,
    Operation,
    OptionalPattern,
    Ordering,
    ProjectedExpression,
    PropertyPath,
    ServicePattern,
    SparqlQuery,
    SubQueryPattern,
    Triple,
    UnionPattern,
    ValuesPattern,
)
from .exceptions import SparqlParseError

logger = logging.getLogger(__name__)

QUERY_TYPES = {
    "SelectQuery": "SELECT",
    "AskQuery": "ASK",
    "ConstructQuery": "CONSTRUCT",
    "DescribeQuery": "DESCRIBE",
}

# Parameter names of Builtin_* nodes, in argument order
_BUILTIN_ARGS = (
    "arg",
    "arg1",
    "arg2",
    "arg3",
    "text",
    "start",
    "length",
    "pattern",
    "replacement",
    "flags",
)

_BINARY_CHAINS = {
    "AdditiveExpression",
    "MultiplicativeExpression",
}

_PN_LOCAL_ESCAPE = re.compile(r"\\(.)")


def parse_sparql(text: str) -> SparqlQuery:
    """
    Parse SPARQL query or update text.

    SELECT queries are converted in full.  ASK, CONSTRUCT and DESCRIBE
    queries and update requests are recognised and returned with their
    ``query_type`` and prologue only.

    Parameters
    ----------
    text : str
        SPARQL text.

    Returns
    -------
    SparqlQuery
        The structured query.

    Raises
    ------
    SparqlParseError
        If the text is not valid SPARQL of any form, or a prefixed name
        uses an undeclared prefix.
    """
    if not isinstance(text, str):
        raise TypeError(f"SPARQL text must be a string, not {type(text).__name__}")
    if not text.strip():
        raise SparqlParseError("Empty query")

    try:
        tree = parseQuery(text)
    except Exception as e:
        if _is_update(text):
            logger.debug("Parsed SPARQL text as an update request")
            return SparqlQuery(query_type="UPDATE")
        raise SparqlParseError(str(e) or e.__class__.__name__) from e

    prologue, body = tree[0], tree[1]
    converter = _TreeConverter()
    converter.read_prologue(prologue)

    query_type = QUERY_TYPES.get(body.name, body.name)
    if query_type != "SELECT":
        return SparqlQuery(
            query_type=query_type,
            prefixes=dict(converter.prefixes),
            base=converter.base,
        )
    return converter.select(body, top_level=True)


def _is_update(text: str) -> bool:
    try:
        parseUpdate(text)
    except Exception:
        return False
    return True


class _TreeConverter:
    """Converts one rdflib parse tree into dataclasses."""

    def __init__(self) -> None:
        self.prefixes: dict[str, str] = {}
        self.base: str | None = None

    def read_prologue(self, prologue: Any) -> None:
        for decl in prologue:
            if decl.name == "Base":
                self.base = str(decl.iri)
            elif decl.name == "PrefixDecl":
                self.prefixes[decl.prefix or ""] = str(decl.iri)

    # ── Query ────────────────────────────────────────────────────────────

    def select(self, node: CompValue, top_level: bool = False) -> SparqlQuery:
        query = SparqlQuery(query_type="SELECT")
        if top_level:
            query.prefixes = dict(self.prefixes)
            query.base = self.base

        modifier = node.modifier
        query.distinct = modifier == "DISTINCT"
        query.reduced = modifier == "REDUCED"

        for projection in _as_list(node.projection):
            if projection.var is not None:
                query.variables.append(projection.var)
            else:
                query.variables.append(
                    ProjectedExpression(self.expression(projection.expr), projection.evar)
                )

        for clause in _as_list(node.datasetClause):
            if clause.default is not None:
                query.from_graphs.append(self.iri(clause.default))
            else:
                query.from_named.append(self.iri(clause.named))

        query.where = self.group_body(node.where)

        if node.groupby is not None:
            for condition in _as_list(node.groupby.condition):
                query.group.append(self.grouping(condition))
        if node.having is not None:
            query.having = [
                self.expression(condition)
                for condition in _as_list(node.having.condition)
            ]
        if node.orderby is not None:
            for condition in _as_list(node.orderby.condition):
                query.order.append(self.ordering(condition))
        if node.limitoffset is not None:
            if node.limitoffset.limit is not None:
                query.limit = int(node.limitoffset.limit)
            if node.limitoffset.offset is not None:
                query.offset = int(node.limitoffset.offset)
        if node.valuesClause is not None:
            query.values = self.values(node.valuesClause)
        return query

    def grouping(self, condition: Any) -> Grouping:
        if isinstance(condition, CompValue) and condition.name == "GroupAs":
            return Grouping(self.expression(condition.expr), condition.var)
        return Grouping(self.expression(condition))

    def ordering(self, condition: Any) -> Ordering:
        if isinstance(condition, CompValue) and condition.name == "OrderCondition":
            return Ordering(
                self.expression(condition.expr),
                descending=condition.order == "DESC",
            )
        return Ordering(self.expression(condition))

    # ── Patterns ─────────────────────────────────────────────────────────

    def group_body(self, node: Any) -> list[Any]:
        """Patterns of a ``{ ... }`` group (a sub-select or a pattern list)."""
        if node is None:
            return []
        if node.name == "SubSelect":
            return [SubQueryPattern(self.select(node))]
        return [self.pattern(part) for part in _as_list(node.part)]

    def pattern(self, part: CompValue) -> Any:
        name = part.name
        if name == "TriplesBlock":
            return BgpPattern(triples=self.triples(part.triples))
        if name == "Filter":
            return FilterPattern(self.expression(part.expr))
        if name == "Bind":
            return BindPattern(self.expression(part.expr), part.var)
        if name == "OptionalGraphPattern":
            return OptionalPattern(self.group_body(part.graph))
        if name == "MinusGraphPattern":
            return MinusPattern(self.group_body(part.graph))
        if name == "GroupOrUnionGraphPattern":
            groups = [GroupPattern(self.group_body(g)) for g in _as_list(part.graph)]
            if len(groups) == 1:
                return groups[0]
            return UnionPattern(groups)
        if name == "GraphGraphPattern":
            return GraphPattern(self.term(part.term), self.group_body(part.graph))
        if name == "ServiceGraphPattern":
            return ServicePattern(
                self.term(part.term),
                self.group_body(part.graph),
                silent=bool(part.silent),
            )
        if name == "InlineData":
            return self.values(part)
        raise SparqlParseError(f"Unsupported graph pattern: {name}")

    def triples(self, blocks: Any) -> list[Triple]:
        terms: list[Any] = []
        for block in _as_list(blocks):
            terms.extend(_flatten(block))
        if len(terms) % 3:
            raise SparqlParseError("Incomplete triple pattern")
        return [
            Triple(
                self.term(terms[i]),
                self.predicate(terms[i + 1]),
                self.term(terms[i + 2]),
            )
            for i in range(0, len(terms), 3)
        ]

    def values(self, node: CompValue) -> ValuesPattern:
        variables = list(_as_list(node.var))
        names = [str(v) for v in variables]
        rows = []
        for value in _as_list(node.value):
            if isinstance(value, (ParseResults, list)):
                cells = list(value)
                if cells == [RDF.nil]:
                    cells = []
            else:
                cells = [value]
            rows.append(
                {
                    names[i]: None if cell == "UNDEF" else self.term(cell)
                    for i, cell in enumerate(cells)
                    if i < len(names)
                }
            )
        return ValuesPattern(variables=variables, rows=rows)

    # ── Paths ────────────────────────────────────────────────────────────

    def predicate(self, node: Any) -> Any:
        if isinstance(node, CompValue) and node.name.startswith("Path"):
            return self.path(node)
        if isinstance(node, CompValue) and node.name == "DistinctPath":
            raise SparqlParseError("DISTINCT property paths are not supported")
        return self.term(node)

    def path(self, node: Any) -> Any:
        if isinstance(node, (ParseResults, list)):
            node = node[0]
        if not isinstance(node, CompValue):
            return self.term(node)

        name = node.name
        if name in ("PathAlternative", "PathSequence"):
            parts = [self.path(p) for p in _as_list(node.part)]
            if len(parts) == 1:
                return parts[0]
            kind = PATH_ALTERNATIVE if name == "PathAlternative" else PATH_SEQUENCE
            return PropertyPath(kind, parts)
        if name == "PathElt":
            inner = self.path(node.part)
            if node.mod:
                return PropertyPath(str(node.mod), [inner])
            return inner
        if name == "PathEltOrInverse":
            return PropertyPath(PATH_INVERSE, [self.path(node.part)])
        if name == "PathNegatedPropertySet":
            return PropertyPath(
                PATH_NEGATED, [self.path(p) for p in _as_list(node.part)]
            )
        if name == "InversePath":
            # rdflib does not keep the IRI of ^iri inside !( ... )
            raise SparqlParseError(
                "Inverse members of negated property sets are not supported"
            )
        if name == "DistinctPath":
            raise SparqlParseError("DISTINCT property paths are not supported")
        return self.term(node)

    # ── Terms ────────────────────────────────────────────────────────────

    def iri(self, node: Any) -> URIRef:
        if isinstance(node, URIRef):
            return node
        if isinstance(node, CompValue) and node.name == "pname":
            prefix = node.prefix or ""
            if prefix not in self.prefixes:
                raise SparqlParseError(f"Unknown prefix: {prefix}")
            local = _PN_LOCAL_ESCAPE.sub(r"\1", node.localname or "")
            return URIRef(self.prefixes[prefix] + local)
        raise SparqlParseError(f"Expected an IRI, got {node!r}")

    def term(self, node: Any) -> Any:
        if isinstance(node, (Variable, BNode, Literal, URIRef)):
            return node
        if isinstance(node, CompValue):
            if node.name == "pname":
                return self.iri(node)
            if node.name == "literal":
                datatype = self.iri(node.datatype) if node.datatype is not None else None
                return Literal(str(node.string), lang=node.lang, datatype=datatype)
        raise SparqlParseError(f"Unsupported term: {node!r}")

    # ── Expressions ──────────────────────────────────────────────────────

    def expression(self, node: Any) -> Any:
        if not isinstance(node, CompValue):
            return self.term(node)

        name = node.name
        if name in ("ConditionalOrExpression", "ConditionalAndExpression"):
            operands = [node.expr, *_as_list(node.other)]
            if len(operands) == 1:
                return self.expression(node.expr)
            operator = "||" if name == "ConditionalOrExpression" else "&&"
            return Operation(operator, [self.expression(e) for e in operands])

        if name == "RelationalExpression":
            left = self.expression(node.expr)
            if node.op is None:
                return left
            op = str(node.op)
            if op in ("IN", "NOT IN"):
                members = node.other
                items = [] if members == RDF.nil else _as_list(members)
                return Operation(
                    "in" if op == "IN" else "notin",
                    [left, [self.expression(i) for i in items]],
                )
            return Operation(op, [left, self.expression(node.other)])

        if name in _BINARY_CHAINS:
            result = self.expression(node.expr)
            for op, other in zip(_as_list(node.op), _as_list(node.other)):
                result = Operation(str(op), [result, self.expression(other)])
            return result

        if name == "UnaryNot":
            return Operation("!", [self.expression(node.expr)])
        if name == "UnaryMinus":
            return Operation("uminus", [self.expression(node.expr)])
        if name == "UnaryPlus":
            return Operation("uplus", [self.expression(node.expr)])

        if name == "Function":
            return FunctionCall(
                self.iri(node.iri),
                [self.expression(e) for e in _as_list(node.expr)],
                distinct=bool(node.distinct),
            )

        if name.startswith("Aggregate_"):
            aggregation = name[len("Aggregate_"):].lower()
            if aggregation == "groupconcat":
                aggregation = "group_concat"
            target = node.vars
            return Aggregate(
                aggregation,
                "*" if target == "*" else self.expression(target),
                distinct=bool(node.distinct),
                separator=str(node.separator) if node.separator is not None else None,
            )

        if name in ("Builtin_EXISTS", "Builtin_NOTEXISTS"):
            operator = "exists" if name == "Builtin_EXISTS" else "notexists"
            return Operation(operator, [GroupPattern(self.group_body(node.graph))])

        if name.startswith("Builtin_"):
            return Operation(name[len("Builtin_"):].lower(), self.builtin_args(node))

        if name in ("pname", "literal"):
            return self.term(node)
        raise SparqlParseError(f"Unsupported expression: {name}")

    def builtin_args(self, node: CompValue) -> list[Any]:
        args: list[Any] = []
        for key in _BUILTIN_ARGS:
            if key not in node:
                continue
            value = node[key]
            if node.name in ("Builtin_CONCAT", "Builtin_COALESCE") and key == "arg":
                if value == RDF.nil:
                    continue
                args.extend(self.expression(v) for v in _as_list(value))
            else:
                args.append(self.expression(value))
        return args


def _as_list(value: Any) -> list[Any]:
    """Normalize a parse-tree parameter to a list (absent -> empty)."""
    if value is None:
        return []
    if isinstance(value, (list, ParseResults)):
        return list(value)
    return [value]


def _flatten(value: Any) -> list[Any]:
    if isinstance(value, (list, ParseResults)):
        flat: list[Any] = []
        for item in value:
            flat.extend(_flatten(item))
        return flat
    return [value]
