"""One-shot SPARQL execution against the DKG store.

For the CLI and for callers that already hold a query: :func:`execute_sparql`
validates the text, puts it in the DKG graph envelope, sends it once and
returns a :class:`QueryResult` whose cells keep their RDF term type,
language tag and datatype.  Failures are reported in ``QueryResult.error``.

Transport, retries and the GET→POST switch belong to ``SparqlHelper``.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any

from pydantic import BaseModel, Field

from dkgquery.sparql import (
    ONLY_SELECT_MESSAGE,
    UnsupportedQueryError,
    is_wrapped,
    parse_sparql,
    serialize_query,
    wrap_with_graph_envelope,
)
from dkgquery.sparql_helper import SparqlHelper, binding_value

# ── Result models ─────────────────────────────────────────────────


class ResultCell(BaseModel):
    """A bound value together with its RDF term details."""

    value: str
    type: str  # "uri" | "literal" | "bnode"
    lang: str | None = None
    datatype: str | None = None

    @classmethod
    def from_binding(cls, cell: dict[str, Any]) -> "ResultCell":
        kind = cell.get("type", "literal")
        return cls(
            value=cell["value"],
            type=kind if kind in ("uri", "bnode") else "literal",
            lang=cell.get("xml:lang"),
            datatype=cell.get("datatype"),
        )

    def to_python(self) -> Any:
        cell: dict[str, Any] = {"type": self.type, "value": self.value}
        if self.lang:
            cell["xml:lang"] = self.lang
        if self.datatype:
            cell["datatype"] = self.datatype
        return binding_value(cell)


class QueryResult(BaseModel):
    """What one execution sent, where, and what came back."""

    query: str = Field(..., description="Query text actually sent")
    endpoint: str
    variables: list[str]
    rows: list[dict[str, ResultCell]]
    row_count: int
    duration_ms: int
    wrapped: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def plain_rows(self) -> list[dict[str, Any]]:
        """Rows as ``{variable: python value}``."""
        return [{k: cell.to_python() for k, cell in row.items()} for row in self.rows]


# ── Execution ─────────────────────────────────────────────────────


def prepare_query(query: str, *, wrap: bool = True, limit: int | None = None) -> str:
    """Return the text to send: optionally re-limited and enveloped.

    Raises
    ------
    SparqlError
        If the query does not parse or is not a SELECT query.
    """
    if not wrap and limit is None:
        return query
    parsed = parse_sparql(query)
    if not parsed.is_select:
        raise UnsupportedQueryError(ONLY_SELECT_MESSAGE)
    if limit is not None:
        parsed = replace(parsed, limit=limit)
    if wrap and not is_wrapped(parsed):
        parsed = wrap_with_graph_envelope(parsed)
    return serialize_query(parsed)


def execute_sparql(
    query: str,
    endpoint: str,
    *,
    wrap: bool = True,
    limit: int | None = None,
    method: str = "GET",
    timeout: int = 30,
) -> QueryResult:
    """Wrap and run one SELECT query.

    Parameters
    ----------
    query:
        SELECT query text, normally written without the graph envelope.
        Text that already carries the envelope is not wrapped twice.
    endpoint:
        Store endpoint URL.
    wrap:
        Put the query in the DKG graph envelope before sending.
    limit:
        Replace the query's LIMIT.
    method:
        ``"POST"`` sends the query as a form body from the start;
        ``"GET"`` falls back to POST when the store refuses it.
    timeout:
        Request timeout in seconds.

    Returns
    -------
    QueryResult
        Never raises: parse errors, non-SELECT queries and store failures
        are reported in ``error`` with no rows.
    """
    started = time.monotonic()

    def elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    sent = query
    try:
        sent = prepare_query(query, wrap=wrap, limit=limit)
        with SparqlHelper(
            endpoint, use_post=method.upper() == "POST", timeout=float(timeout)
        ) as store:
            results = store.select(sent)
    except Exception as exc:
        return QueryResult(
            query=sent,
            endpoint=endpoint,
            variables=[],
            rows=[],
            row_count=0,
            duration_ms=elapsed(),
            wrapped=wrap,
            error=str(exc) or type(exc).__name__,
        )

    variables = list(results.get("head", {}).get("vars", []))
    rows = [
        {var: ResultCell.from_binding(binding[var]) for var in variables if binding.get(var)}
        for binding in results.get("results", {}).get("bindings", [])
    ]
    return QueryResult(
        query=sent,
        endpoint=endpoint,
        variables=variables,
        rows=rows,
        row_count=len(rows),
        duration_ms=elapsed(),
        wrapped=wrap,
    )
