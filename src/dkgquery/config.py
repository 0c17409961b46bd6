"""Configuration loaded from environment variables."""

from __future__ import annotations

import os


class Config:
    """Default configuration for the query loop and its collaborators."""

    # Graph store
    SPARQL_ENDPOINT = os.getenv(
        "DKG_SPARQL_ENDPOINT", "http://localhost:9999/blazegraph/namespace/dkg/sparql",
    )
    SPARQL_TIMEOUT = int(os.getenv("DKG_SPARQL_TIMEOUT", "30"))
    SPARQL_MAX_RETRIES = int(os.getenv("DKG_SPARQL_MAX_RETRIES", "3"))

    # Iteration ceilings: discovering loop and tool-calling agent
    QUERY_MAX_ITERATIONS = int(os.getenv("DKG_QUERY_MAX_ITERATIONS", "3"))
    AGENT_MAX_ITERATIONS = int(os.getenv("DKG_AGENT_MAX_ITERATIONS", "10"))

    # Discovery limits
    SEED_CLASS_LIMIT = int(os.getenv("DKG_SEED_CLASS_LIMIT", "15"))
    CLASS_LIMIT = int(os.getenv("DKG_CLASS_LIMIT", "30"))
    PREDICATE_LIMIT = int(os.getenv("DKG_PREDICATE_LIMIT", "50"))
    SAMPLE_LIMIT = int(os.getenv("DKG_SAMPLE_LIMIT", "20"))

    # Rows of each execution shown to the planner
    RESULT_PREVIEW_ROWS = int(os.getenv("DKG_RESULT_PREVIEW_ROWS", "20"))

    # Debug traces are written only when set
    TRACE_DIR = os.getenv("DKG_QUERY_TRACE_DIR", "")

    # Optional YAML file replacing the packaged query examples
    QUERY_EXAMPLES = os.getenv("DKG_QUERY_EXAMPLES", "")

    # Planning oracle
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    MODEL = os.getenv("DKG_QUERY_MODEL", "gpt-4o-mini")
    TEMPERATURE = float(os.getenv("DKG_QUERY_TEMPERATURE", "0.3"))


class TestConfig(Config):
    """Configuration overrides for testing."""

    TESTING = True
    SPARQL_ENDPOINT = "http://test.example.org/sparql"
    SPARQL_MAX_RETRIES = 1
    TRACE_DIR = ""
    QUERY_EXAMPLES = ""
    OPENAI_API_KEY = "test-key"
