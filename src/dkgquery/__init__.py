"""dkgquery: natural language questions over an OriginTrail DKG.

Main modules:
- sparql: parse, validate, wrap in the DKG graph envelope and serialize queries
- discovery: schema discovery templates (classes, predicates, samples, extensions)
- loop: the iterative planner/executor loop
- agent: top-level ``run_query`` entry point
- sparql_helper: HTTP client for the graph store
"""

from . import utils
from .agent import DkgQueryAgent, run_query
from .cache import DiscoveryCache, get_default_cache
from .discovery import DiscoveryLibrary
from .loop import QueryLoop
from .models import AgentAnswer, DiscoveredSchema, IterationAttempt, QueryOutcome
from .sparql import validate_sparql, wrap_query_text, wrap_with_graph_envelope

# Import version information
from .version import VERSION

__all__ = [
    "VERSION",
    "AgentAnswer",
    "DiscoveredSchema",
    "DiscoveryCache",
    "DiscoveryLibrary",
    "DkgQueryAgent",
    "IterationAttempt",
    "QueryLoop",
    "QueryOutcome",
    "get_default_cache",
    "run_query",
    "utils",
    "validate_sparql",
    "wrap_query_text",
    "wrap_with_graph_envelope",
]
