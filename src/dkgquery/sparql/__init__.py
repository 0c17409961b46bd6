"""SPARQL parsing, validation, graph-envelope wrapping and serialization."""

from .ast import (
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
    bind_parameters,
    create_simple_select_query,
    iter_triples,
    to_term,
)
from .envelope import (
    CURRENT_GRAPH,
    DKG_NAMESPACE,
    HAS_NAMED_GRAPH,
    ONLY_SELECT_MESSAGE,
    ValidationResult,
    WrapResult,
    is_wrapped,
    validate_sparql,
    wrap_query_text,
    wrap_with_graph_envelope,
)
from .exceptions import (
    SparqlError,
    SparqlParseError,
    SparqlSerializeError,
    UnsupportedQueryError,
)
from .parser import parse_sparql
from .serializer import serialize_query

__all__ = [
    # Structure
    "Aggregate",
    "BgpPattern",
    "BindPattern",
    "FilterPattern",
    "FunctionCall",
    "GraphPattern",
    "GroupPattern",
    "Grouping",
    "MinusPattern",
    "Operation",
    "OptionalPattern",
    "Ordering",
    "ProjectedExpression",
    "PropertyPath",
    "ServicePattern",
    "SparqlQuery",
    "SubQueryPattern",
    "Triple",
    "UnionPattern",
    "ValuesPattern",
    "bind_parameters",
    "create_simple_select_query",
    "iter_triples",
    "to_term",
    # Text round trip
    "parse_sparql",
    "serialize_query",
    # Envelope
    "CURRENT_GRAPH",
    "DKG_NAMESPACE",
    "HAS_NAMED_GRAPH",
    "ONLY_SELECT_MESSAGE",
    "ValidationResult",
    "WrapResult",
    "is_wrapped",
    "validate_sparql",
    "wrap_query_text",
    "wrap_with_graph_envelope",
    # Errors
    "SparqlError",
    "SparqlParseError",
    "SparqlSerializeError",
    "UnsupportedQueryError",
]
