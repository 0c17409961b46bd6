"""
Write a :class:`~dkgquery.sparql.ast.SparqlQuery` back to SPARQL text.

Output is deterministic: prefixes in declaration order, one triple pattern
per line, two-space indentation per nesting level.  IRIs are written as
prefixed names only when the local part is a plain name, so every
serialized query re-parses to the same structure.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from rdflib import BNode, Literal, URIRef, Variable
from rdflib.namespace import RDF, XSD

from .ast import (
    ARITHMETIC_OPERATORS,
    LOGICAL_OPERATORS,
    PATH_ALTERNATIVE,
    PATH_INVERSE,
    PATH_MODIFIERS,
    PATH_NEGATED,
    PATH_SEQUENCE,
    RELATIONAL_OPERATORS,
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
from .exceptions import SparqlSerializeError

logger = logging.getLogger(__name__)

INDENT = "  "

_SAFE_LOCAL_NAME = re.compile(r"^[A-Za-z0-9_](?:[A-Za-z0-9_\-]*[A-Za-z0-9_])?$")
_SAFE_PREFIX = re.compile(r"^(?:[A-Za-z](?:[A-Za-z0-9_\-]*[A-Za-z0-9_])?)?$")

_NUMERIC_FORMS = {
    XSD.integer: re.compile(r"^[+-]?[0-9]+$"),
    XSD.decimal: re.compile(r"^[+-]?[0-9]*\.[0-9]+$"),
    XSD.double: re.compile(
        r"^[+-]?(?:[0-9]+\.[0-9]*[eE][+-]?[0-9]+|\.[0-9]+[eE][+-]?[0-9]+|[0-9]+[eE][+-]?[0-9]+)$"
    ),
}

_STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_UNARY_SYMBOLS = {"!": "!", "uminus": "-", "uplus": "+"}


def serialize_query(query: SparqlQuery) -> str:
    """Serialize a SELECT query to SPARQL text.

    Raises:
        SparqlSerializeError: If the query is not a SELECT query or contains
            a node the serializer does not know.
    """
    if query.query_type != "SELECT":
        raise SparqlSerializeError(
            f"Cannot serialize {query.query_type} queries, only SELECT"
        )
    writer = _Writer(query.prefixes)
    lines = []
    if query.base:
        lines.append(f"BASE <{query.base}>")
    for prefix, namespace in query.prefixes.items():
        lines.append(f"PREFIX {prefix}: <{namespace}>")
    lines.extend(writer.select(query))
    return "\n".join(lines)


class _Writer:
    def __init__(self, prefixes: dict[str, str]) -> None:
        # Longest namespaces first so the most specific prefix wins
        self._namespaces = sorted(
            (
                (prefix, namespace)
                for prefix, namespace in prefixes.items()
                if _SAFE_PREFIX.match(prefix)
            ),
            key=lambda item: len(item[1]),
            reverse=True,
        )

    # ── Query ────────────────────────────────────────────────────────────

    def select(self, query: SparqlQuery, depth: int = 0) -> list[str]:
        pad = INDENT * depth
        head = "SELECT"
        if query.distinct:
            head += " DISTINCT"
        elif query.reduced:
            head += " REDUCED"
        if query.variables:
            head += " " + " ".join(self.projection(p) for p in query.variables)
        else:
            head += " *"

        lines = [pad + head]
        lines.extend(f"{pad}FROM {self.iri(g)}" for g in query.from_graphs)
        lines.extend(f"{pad}FROM NAMED {self.iri(g)}" for g in query.from_named)
        lines.append(pad + "WHERE {")
        lines.extend(self.group(query.where, depth + 1))
        lines.append(pad + "}")

        if query.group:
            lines.append(pad + "GROUP BY " + " ".join(self.grouping(g) for g in query.group))
        if query.having:
            lines.append(
                pad + "HAVING " + " ".join(f"({self.expression(h)})" for h in query.having)
            )
        if query.order:
            lines.append(pad + "ORDER BY " + " ".join(self.ordering(o) for o in query.order))
        if query.limit is not None:
            lines.append(f"{pad}LIMIT {int(query.limit)}")
        if query.offset is not None:
            lines.append(f"{pad}OFFSET {int(query.offset)}")
        if query.values is not None:
            lines.extend(self.values(query.values, depth))
        return lines

    def projection(self, projection: Any) -> str:
        if isinstance(projection, ProjectedExpression):
            return f"({self.expression(projection.expression)} AS {self.term(projection.variable)})"
        return self.term(projection)

    def grouping(self, grouping: Grouping) -> str:
        if grouping.variable is not None:
            return f"({self.expression(grouping.expression)} AS {self.term(grouping.variable)})"
        if isinstance(grouping.expression, (Variable, FunctionCall)):
            return self.expression(grouping.expression)
        return f"({self.expression(grouping.expression)})"

    def ordering(self, ordering: Ordering) -> str:
        expression = self.expression(ordering.expression)
        if ordering.descending:
            return f"DESC({expression})"
        if isinstance(ordering.expression, Variable):
            return expression
        return f"ASC({expression})"

    # ── Patterns ─────────────────────────────────────────────────────────

    def group(self, patterns: list[Any], depth: int) -> list[str]:
        """Body lines of a ``{ ... }`` group at ``depth``."""
        if len(patterns) == 1 and isinstance(patterns[0], SubQueryPattern):
            return self.select(patterns[0].query, depth)
        lines: list[str] = []
        for pattern in patterns:
            lines.extend(self.pattern(pattern, depth))
        return lines

    def block(self, keyword: str, patterns: list[Any], depth: int) -> list[str]:
        pad = INDENT * depth
        opener = f"{keyword} {{" if keyword else "{"
        return [pad + opener, *self.group(patterns, depth + 1), pad + "}"]

    def pattern(self, pattern: Any, depth: int) -> list[str]:
        pad = INDENT * depth
        if isinstance(pattern, BgpPattern):
            return [pad + self.triple(t) for t in pattern.triples]
        if isinstance(pattern, FilterPattern):
            return [f"{pad}FILTER({self.expression(pattern.expression)})"]
        if isinstance(pattern, BindPattern):
            return [
                f"{pad}BIND({self.expression(pattern.expression)} AS {self.term(pattern.variable)})"
            ]
        if isinstance(pattern, GroupPattern):
            return self.block("", pattern.patterns, depth)
        if isinstance(pattern, OptionalPattern):
            return self.block("OPTIONAL", pattern.patterns, depth)
        if isinstance(pattern, MinusPattern):
            return self.block("MINUS", pattern.patterns, depth)
        if isinstance(pattern, GraphPattern):
            return self.block(f"GRAPH {self.term(pattern.name)}", pattern.patterns, depth)
        if isinstance(pattern, ServicePattern):
            keyword = "SERVICE SILENT" if pattern.silent else "SERVICE"
            return self.block(f"{keyword} {self.term(pattern.name)}", pattern.patterns, depth)
        if isinstance(pattern, UnionPattern):
            lines: list[str] = []
            for index, alternative in enumerate(pattern.patterns):
                if index:
                    lines.append(pad + "UNION")
                members = (
                    alternative.patterns
                    if isinstance(alternative, GroupPattern)
                    else [alternative]
                )
                lines.extend(self.block("", members, depth))
            return lines
        if isinstance(pattern, ValuesPattern):
            return self.values(pattern, depth)
        if isinstance(pattern, SubQueryPattern):
            return [pad + "{", *self.select(pattern.query, depth + 1), pad + "}"]
        raise SparqlSerializeError(f"Unknown graph pattern: {pattern!r}")

    def triple(self, triple: Triple) -> str:
        return (
            f"{self.term(triple.subject)} {self.predicate(triple.predicate)} "
            f"{self.term(triple.object)} ."
        )

    def values(self, pattern: ValuesPattern, depth: int) -> list[str]:
        pad = INDENT * depth
        names = [str(v) for v in pattern.variables]
        header = " ".join(self.term(v) for v in pattern.variables)
        lines = [f"{pad}VALUES ({header}) {{"]
        for row in pattern.rows:
            cells = " ".join(
                "UNDEF" if row.get(name) is None else self.term(row[name])
                for name in names
            )
            lines.append(f"{pad}{INDENT}({cells})")
        lines.append(pad + "}")
        return lines

    # ── Paths ────────────────────────────────────────────────────────────

    def predicate(self, predicate: Any) -> str:
        if isinstance(predicate, PropertyPath):
            return self.path(predicate)
        if predicate == RDF.type and isinstance(predicate, URIRef):
            return "a"
        return self.term(predicate)

    def path(self, path: Any) -> str:
        if not isinstance(path, PropertyPath):
            return self.predicate(path)
        kind = path.kind
        if kind == PATH_ALTERNATIVE:
            return "|".join(self._path_operand(p, (PATH_ALTERNATIVE,)) for p in path.items)
        if kind == PATH_SEQUENCE:
            return "/".join(
                self._path_operand(p, (PATH_ALTERNATIVE, PATH_SEQUENCE)) for p in path.items
            )
        if kind == PATH_INVERSE:
            return "^" + self._path_operand(
                path.items[0], (PATH_ALTERNATIVE, PATH_SEQUENCE, PATH_INVERSE)
            )
        if kind == PATH_NEGATED:
            return "!(" + "|".join(self.path(p) for p in path.items) + ")"
        if kind in PATH_MODIFIERS:
            return (
                self._path_operand(
                    path.items[0],
                    (PATH_ALTERNATIVE, PATH_SEQUENCE, PATH_INVERSE, *PATH_MODIFIERS),
                )
                + kind
            )
        raise SparqlSerializeError(f"Unknown property path kind: {kind!r}")

    def _path_operand(self, path: Any, bracketed: tuple[str, ...]) -> str:
        text = self.path(path)
        if isinstance(path, PropertyPath) and path.kind in bracketed:
            return f"({text})"
        return text

    # ── Expressions ──────────────────────────────────────────────────────

    def expression(self, expression: Any) -> str:
        if isinstance(expression, Operation):
            return self.operation(expression)
        if isinstance(expression, FunctionCall):
            distinct = "DISTINCT " if expression.distinct else ""
            args = ", ".join(self.expression(a) for a in expression.args)
            return f"{self.iri(expression.function)}({distinct}{args})"
        if isinstance(expression, Aggregate):
            return self.aggregate(expression)
        return self.term(expression)

    def operation(self, operation: Operation) -> str:
        operator = operation.operator
        args = operation.args
        if operator in LOGICAL_OPERATORS + RELATIONAL_OPERATORS + ARITHMETIC_OPERATORS:
            joined = f" {operator} ".join(self.expression(a) for a in args)
            return f"({joined})"
        if operator in _UNARY_SYMBOLS:
            return f"{_UNARY_SYMBOLS[operator]}({self.expression(args[0])})"
        if operator in ("in", "notin"):
            keyword = "IN" if operator == "in" else "NOT IN"
            members = ", ".join(self.expression(a) for a in args[1])
            return f"({self.expression(args[0])} {keyword} ({members}))"
        if operator in ("exists", "notexists"):
            keyword = "EXISTS" if operator == "exists" else "NOT EXISTS"
            group = args[0]
            patterns = group.patterns if isinstance(group, GroupPattern) else list(args)
            body = " ".join(line.strip() for line in self.group(patterns, 0))
            return f"{keyword} {{ {body} }}"
        return f"{operator.upper()}({', '.join(self.expression(a) for a in args)})"

    def aggregate(self, aggregate: Aggregate) -> str:
        name = aggregate.aggregation.upper()
        distinct = "DISTINCT " if aggregate.distinct else ""
        if aggregate.expression == "*":
            inner = "*"
        else:
            inner = self.expression(aggregate.expression)
        if aggregate.separator is not None:
            inner += f"; SEPARATOR={self.string(aggregate.separator)}"
        return f"{name}({distinct}{inner})"

    # ── Terms ────────────────────────────────────────────────────────────

    def term(self, term: Any) -> str:
        if isinstance(term, Variable):
            return f"?{term}"
        if isinstance(term, BNode):
            return f"_:{term}"
        if isinstance(term, URIRef):
            return self.iri(term)
        if isinstance(term, Literal):
            return self.literal(term)
        raise SparqlSerializeError(f"Unknown term: {term!r}")

    def iri(self, iri: URIRef) -> str:
        value = str(iri)
        for prefix, namespace in self._namespaces:
            if value.startswith(namespace):
                local = value[len(namespace):]
                if _SAFE_LOCAL_NAME.match(local):
                    return f"{prefix}:{local}"
        return f"<{value}>"

    def literal(self, literal: Literal) -> str:
        lexical = str(literal)
        datatype = literal.datatype
        if datatype == XSD.boolean and lexical in ("true", "false"):
            return lexical
        if datatype in _NUMERIC_FORMS and _NUMERIC_FORMS[datatype].match(lexical):
            return lexical
        text = self.string(lexical)
        if literal.language:
            return f"{text}@{literal.language}"
        if datatype is not None and datatype != XSD.string:
            return f"{text}^^{self.iri(datatype)}"
        return text

    @staticmethod
    def string(value: str) -> str:
        escaped = "".join(_STRING_ESCAPES.get(ch, ch) for ch in value)
        return f'"{escaped}"'
