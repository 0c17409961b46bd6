"""
HTTP client for the DKG graph store.

The query loop and the discovery library only need one call from the
store: ``query(sparql, "SELECT") -> {"data": rows}``.  :class:`SparqlHelper`
provides it over the SPARQL 1.1 protocol and takes care of:

- switching to POST when the endpoint refuses GET (405 or an HTML page)
- retrying 429/5xx responses and connection failures with backoff
- turning SPARQL JSON bindings into plain ``{variable: value}`` rows

Usage:
    from dkgquery.sparql_helper import SparqlHelper

    with SparqlHelper("http://localhost:9999/blazegraph/namespace/dkg/sparql") as store:
        rows = store.query("SELECT ?s WHERE { ?s ?p ?o } LIMIT 10")["data"]
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any, Protocol

import requests
from rdflib import Literal as RDFLiteral
from rdflib.namespace import XSD

from .version import VERSION

logger = logging.getLogger(__name__)

USER_AGENT = f"dkgquery/{VERSION} (SPARQL client)"

RESULTS_ACCEPT = "application/sparql-results+json, application/sparql-results+xml;q=0.9"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Response statuses worth another attempt
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})

# Connection error texts after which POST is tried instead of GET
POST_HINTS = ("html", "500", "internal", "error", "method not allowed")


class SparqlHelperError(Exception):
    """Base exception for store client errors."""

    pass


class EndpointError(SparqlHelperError):
    """The endpoint failed or could not be reached."""

    pass


class QueryError(SparqlHelperError):
    """The store rejected the query itself."""

    pass


class GraphStore(Protocol):
    """Store contract consumed by the discovery library and the loop.

    ``query`` returns ``{"data": [row, ...]}`` where each row maps variable
    names to values, and raises on any failure.
    """

    def query(self, sparql: str, query_type: str = "SELECT") -> dict[str, Any]: ...


def binding_value(cell: dict[str, Any]) -> Any:
    """Convert one SPARQL JSON binding cell to a plain Python value.

    Typed literals become Python values through rdflib (``xsd:integer`` →
    ``int``, ``xsd:boolean`` → ``bool``, ...).  IRIs and plain literals
    stay strings; blank nodes are returned as ``_:label``.
    """
    kind = cell.get("type")
    value = cell.get("value", "")
    if kind in ("literal", "typed-literal"):
        datatype = cell.get("datatype")
        if datatype and datatype != str(XSD.string):
            converted = RDFLiteral(value, datatype=datatype).toPython()
            if not isinstance(converted, RDFLiteral):
                return converted
        return value
    if kind == "bnode":
        return f"_:{value}"
    return value


def bindings_to_rows(results: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten SPARQL JSON results into ``{variable: value}`` rows."""
    bindings = results.get("results", {}).get("bindings", [])
    return [{var: binding_value(cell) for var, cell in binding.items()} for binding in bindings]


def looks_like_html(text: str) -> bool:
    """Whether a response body is an HTML page rather than query results."""
    head = text.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


class SparqlHelper:
    """
    SPARQL protocol client implementing the store contract.

    Attributes:
        endpoint_url: The SPARQL endpoint URL
        max_retries: Attempts per query for transient failures
        initial_backoff: First delay between attempts, in seconds
        max_backoff: Upper bound of the delay, in seconds
        timeout: Per-request timeout in seconds

    Example:
        >>> store = SparqlHelper("http://localhost:9999/sparql")
        >>> rows = store.query("SELECT ?g { GRAPH ?g { ?s ?p ?o } }")["data"]
    """

    def __init__(
        self,
        endpoint_url: str,
        *,
        use_post: bool = False,
        max_retries: int = 3,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            endpoint_url: SPARQL endpoint URL
            use_post: Send every query with POST instead of trying GET first
            max_retries: Attempts per query for transient failures
            initial_backoff: First delay between attempts (seconds)
            max_backoff: Upper bound of the delay (seconds)
            timeout: Per-request timeout (seconds)
        """
        if not endpoint_url:
            raise ValueError("A SPARQL endpoint URL is required")
        self.endpoint_url = endpoint_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.timeout = timeout

        # Sticky once the endpoint has refused GET
        self._method = "POST" if use_post else "GET"
        self._session = requests.Session()

    @property
    def use_post(self) -> bool:
        return self._method == "POST"

    # ── Store contract ───────────────────────────────────────────────────

    def query(self, sparql: str, query_type: str = "SELECT") -> dict[str, Any]:
        """
        Run a SELECT query and return ``{"data": rows}``.

        Raises:
            QueryError: If the query type is not SELECT, or the store
                rejects the query text
            EndpointError: If the endpoint keeps failing
        """
        if query_type != "SELECT":
            raise QueryError(f"Unsupported query type for the store: {query_type}")
        rows = bindings_to_rows(self.select(sparql))
        logger.debug(f"{len(rows)} rows from {self.endpoint_url}")
        return {"data": rows}

    def select(self, query: str) -> dict[str, Any]:
        """Run a SELECT query and return the raw SPARQL JSON results."""
        logger.debug(f"SELECT to {self.endpoint_url}:\n{query}")
        attempt = 1
        while True:
            method = self._method
            try:
                body = self._send(method, query)
                if looks_like_html(body):
                    if self._switch_to_post(method, "an HTML page"):
                        continue
                    raise EndpointError("Endpoint returned an HTML page instead of results")
                result: dict[str, Any] = json.loads(body)
                return result
            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status == 405 and self._switch_to_post(method, "405"):
                    continue
                if status not in TRANSIENT_STATUSES:
                    if status == 400:
                        raise QueryError(f"HTTP 400: {self._response_text(e)}") from e
                    raise EndpointError(f"HTTP {status}: {e}") from e
                self._pause_or_fail(attempt, e)
            except requests.exceptions.RequestException as e:
                if any(hint in str(e).lower() for hint in POST_HINTS) and self._switch_to_post(
                    method, str(e)
                ):
                    continue
                self._pause_or_fail(attempt, e)
            except json.JSONDecodeError as e:
                self._pause_or_fail(attempt, e)
            attempt += 1

    # ── Transport ────────────────────────────────────────────────────────

    def _send(self, method: str, query: str) -> str:
        headers = {"Accept": RESULTS_ACCEPT, "User-Agent": USER_AGENT}
        if method == "POST":
            headers["Content-Type"] = FORM_CONTENT_TYPE
            response = self._session.post(
                self.endpoint_url, data={"query": query}, headers=headers, timeout=self.timeout
            )
        else:
            response = self._session.get(
                self.endpoint_url, params={"query": query}, headers=headers, timeout=self.timeout
            )
        response.raise_for_status()
        return response.text

    def _switch_to_post(self, method: str, reason: str) -> bool:
        """Fall back to POST once; ``False`` when POST was already in use."""
        if method == "POST":
            return False
        logger.debug(f"GET refused ({reason}), switching {self.endpoint_url} to POST")
        self._method = "POST"
        return True

    def _pause_or_fail(self, attempt: int, error: Exception) -> None:
        """Sleep before the next attempt, or raise once attempts are used up."""
        logger.warning(f"Query attempt {attempt}/{self.max_retries} failed: {error}")
        if attempt >= self.max_retries:
            raise EndpointError(
                f"Query failed after {self.max_retries} attempts: {error}"
            ) from error

        delay = min(self.initial_backoff * 2 ** (attempt - 1), self.max_backoff)
        delay += secrets.randbelow(int(delay * 100) + 1) / 1000
        logger.info(f"Retrying in {delay:.1f}s")
        time.sleep(delay)

    @staticmethod
    def _response_text(error: requests.exceptions.HTTPError) -> str:
        if error.response is not None and error.response.text:
            return error.response.text.strip()[:500]
        return str(error)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def close(self) -> None:
        """Close the underlying requests session."""
        self._session.close()

    def __enter__(self) -> SparqlHelper:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SparqlHelper({self.endpoint_url!r}, use_post={self.use_post})"
