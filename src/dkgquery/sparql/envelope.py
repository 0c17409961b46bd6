"""
Validation and graph-envelope wrapping of candidate queries.

The DKG store keeps every knowledge asset in its own named graph and lists
those graphs in an index graph.  A query only sees asset data when its
patterns run inside that indirection::

    GRAPH <current:graph> { ?dkgGraphRef dkg:hasNamedGraph ?dkgContainedGraph . }
    GRAPH ?dkgContainedGraph { ...original patterns... }

:func:`wrap_query_text` is the single entry point used before a query is
sent to the store.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from pydantic import BaseModel, Field
from rdflib import URIRef, Variable

from .ast import BgpPattern, GraphPattern, SparqlQuery, Triple
from .exceptions import SparqlError, UnsupportedQueryError
from .parser import parse_sparql
from .serializer import serialize_query

logger = logging.getLogger(__name__)

# Wire constants shared with the store
DKG_NAMESPACE = "https://ontology.origintrail.io/dkg/1.0#"
DKG_PREFIX = "dkg"
HAS_NAMED_GRAPH = URIRef(DKG_NAMESPACE + "hasNamedGraph")
CURRENT_GRAPH = URIRef("current:graph")
GRAPH_REF_VAR = Variable("dkgGraphRef")
CONTAINED_GRAPH_VAR = Variable("dkgContainedGraph")

ONLY_SELECT_MESSAGE = "Only SELECT queries are supported"


class ValidationResult(BaseModel):
    """Outcome of a syntax check."""

    valid: bool = Field(..., description="Whether the text parsed")
    error: str | None = Field(default=None, description="Parser message when invalid")


class WrapResult(BaseModel):
    """Outcome of wrapping query text with the graph envelope."""

    success: bool
    sparql: str | None = Field(default=None, description="Enveloped query text")
    error: str | None = None


def validate_sparql(text: str) -> ValidationResult:
    """Check that ``text`` is valid SPARQL of any form. Never raises."""
    try:
        parse_sparql(text)
    except Exception as e:
        return ValidationResult(valid=False, error=str(e) or e.__class__.__name__)
    return ValidationResult(valid=True)


def wrap_with_graph_envelope(query: SparqlQuery) -> SparqlQuery:
    """Return a copy of a SELECT query whose body runs inside the envelope.

    The new ``where`` holds exactly two patterns: the index-graph lookup and
    a ``GRAPH ?dkgContainedGraph`` pattern whose pattern list is the
    original one.  The envelope prefix is added when its namespace is not
    already declared.  The input query is not modified.
    """
    index_pattern = GraphPattern(
        CURRENT_GRAPH,
        [BgpPattern([Triple(GRAPH_REF_VAR, HAS_NAMED_GRAPH, CONTAINED_GRAPH_VAR)])],
    )
    content_pattern = GraphPattern(CONTAINED_GRAPH_VAR, query.where)

    prefixes = dict(query.prefixes)
    if DKG_NAMESPACE not in prefixes.values():
        label = DKG_PREFIX
        counter = 1
        while label in prefixes:
            label = f"{DKG_PREFIX}{counter}"
            counter += 1
        prefixes[label] = DKG_NAMESPACE

    return replace(query, where=[index_pattern, content_pattern], prefixes=prefixes)


def is_wrapped(query: SparqlQuery) -> bool:
    """Whether ``query`` already has the exact envelope as its body."""
    if len(query.where) != 2:
        return False
    index_pattern, content_pattern = query.where
    if not (
        isinstance(index_pattern, GraphPattern)
        and isinstance(content_pattern, GraphPattern)
    ):
        return False
    if index_pattern.name != CURRENT_GRAPH or len(index_pattern.patterns) != 1:
        return False
    bgp = index_pattern.patterns[0]
    if not isinstance(bgp, BgpPattern) or len(bgp.triples) != 1:
        return False
    link = bgp.triples[0]
    return (
        link.predicate == HAS_NAMED_GRAPH
        and isinstance(link.object, Variable)
        and content_pattern.name == link.object
    )


def wrap_query_text(text: str) -> WrapResult:
    """
    Parse, envelope and re-serialize candidate query text.

    Non-SELECT queries are rejected with a fixed message.  Queries that
    already carry the envelope are re-serialized without a second wrap.
    Never raises.
    """
    try:
        query = parse_sparql(text)
        if not query.is_select:
            raise UnsupportedQueryError(ONLY_SELECT_MESSAGE)
        if is_wrapped(query):
            logger.debug("Query already carries the graph envelope")
            wrapped = query
        else:
            wrapped = wrap_with_graph_envelope(query)
        sparql = serialize_query(wrapped)
    except SparqlError as e:
        logger.debug(f"Could not wrap query: {e}")
        return WrapResult(success=False, error=str(e))
    except Exception as e:
        logger.warning(f"Unexpected error while wrapping query: {e}")
        return WrapResult(success=False, error=str(e) or e.__class__.__name__)
    return WrapResult(success=True, sparql=sparql)
