"""Main dkgquery functionalities: validation, wrapping, discovery and questions."""

from typing import List, Optional

from .agent import DkgQueryAgent
from .cache import DiscoveryCache, get_default_cache
from .config import Config
from .discovery import DiscoveryLibrary
from .models import AgentAnswer, DiscoveryResult
from .oracle import PlanningOracle
from .query import QueryResult, execute_sparql
from .sparql import ValidationResult, WrapResult, validate_sparql, wrap_query_text
from .sparql_helper import GraphStore, SparqlHelper

__all__ = [
    "ask",
    "discover_classes",
    "discover_extensions",
    "discover_predicates",
    "execute_query",
    "get_discovery_library",
    "sample_data",
    "validate_query",
    "wrap_query",
]


def validate_query(sparql: str) -> ValidationResult:
    """Check that text parses as SPARQL.

    Args:
        sparql: Query text

    Returns:
        ValidationResult with ``valid`` and, when invalid, ``error``
    """
    return validate_sparql(sparql)


def wrap_query(sparql: str) -> WrapResult:
    """Wrap a SELECT query in the DKG graph envelope.

    Args:
        sparql: SELECT query text without the envelope

    Returns:
        WrapResult with the enveloped text, or the error
    """
    return wrap_query_text(sparql)


def execute_query(
    sparql: str,
    endpoint: Optional[str] = None,
    wrap: bool = True,
    limit: Optional[int] = None,
) -> QueryResult:
    """Wrap (unless disabled) and run one query.

    Args:
        sparql: SELECT query text
        endpoint: Store endpoint (``DKG_SPARQL_ENDPOINT`` when omitted)
        wrap: Add the DKG graph envelope
        limit: Replace the query's LIMIT

    Returns:
        QueryResult; failures are reported in ``error``
    """
    return execute_sparql(
        sparql,
        endpoint or Config.SPARQL_ENDPOINT,
        wrap=wrap,
        limit=limit,
        timeout=Config.SPARQL_TIMEOUT,
    )


def get_discovery_library(
    endpoint: Optional[str] = None,
    store: Optional[GraphStore] = None,
    cache: Optional[DiscoveryCache] = None,
) -> DiscoveryLibrary:
    """Discovery library over a store (an HTTP client for ``endpoint`` by default).

    Args:
        endpoint: Store endpoint (``DKG_SPARQL_ENDPOINT`` when omitted)
        store: Store object to use instead of an HTTP client
        cache: Discovery cache (the process-wide cache when omitted)

    Returns:
        DiscoveryLibrary instance
    """
    if store is None:
        store = SparqlHelper(
            endpoint or Config.SPARQL_ENDPOINT,
            max_retries=Config.SPARQL_MAX_RETRIES,
            timeout=Config.SPARQL_TIMEOUT,
        )
    return DiscoveryLibrary(
        store,
        cache if cache is not None else get_default_cache(),
        class_limit=Config.CLASS_LIMIT,
        predicate_limit=Config.PREDICATE_LIMIT,
        sample_limit=Config.SAMPLE_LIMIT,
    )


def discover_classes(
    endpoint: Optional[str] = None,
    limit: Optional[int] = None,
    keywords: Optional[List[str]] = None,
) -> DiscoveryResult:
    """List classes by instance count, optionally filtered by keywords."""
    return get_discovery_library(endpoint).list_classes(limit, keywords)


def discover_predicates(
    endpoint: Optional[str] = None,
    class_uri: Optional[str] = None,
    keyword: Optional[str] = None,
    limit: Optional[int] = None,
) -> DiscoveryResult:
    """List predicates of a class or predicates matching a keyword."""
    return get_discovery_library(endpoint).discover_predicates(class_uri, keyword, limit)


def sample_data(
    class_uri: str,
    endpoint: Optional[str] = None,
    limit: Optional[int] = None,
) -> DiscoveryResult:
    """Example triples for instances of a class."""
    return get_discovery_library(endpoint).sample_triples(class_uri, limit)


def discover_extensions(class_uri: str, endpoint: Optional[str] = None) -> DiscoveryResult:
    """Ontology-specific extension properties of a class."""
    return get_discovery_library(endpoint).discover_extensions(class_uri)


def ask(
    question: str,
    endpoint: Optional[str] = None,
    oracle: Optional[PlanningOracle] = None,
    max_iterations: Optional[int] = None,
    config: type = Config,
) -> AgentAnswer:
    """Answer a natural-language question against the DKG.

    Args:
        question: The question
        endpoint: Store endpoint (``DKG_SPARQL_ENDPOINT`` when omitted)
        oracle: Planning oracle (OpenAI-backed when omitted)
        max_iterations: Iteration ceiling (``DKG_AGENT_MAX_ITERATIONS`` when omitted)
        config: Configuration class to read the remaining settings from

    Returns:
        AgentAnswer with the answer and the queries sent to the store
    """
    store = None
    if endpoint:
        store = SparqlHelper(
            endpoint,
            max_retries=config.SPARQL_MAX_RETRIES,
            timeout=config.SPARQL_TIMEOUT,
        )
    agent = DkgQueryAgent.from_config(
        config, store=store, oracle=oracle, max_iterations=max_iterations
    )
    return agent.run_query(question)
