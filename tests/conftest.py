"""Shared fixtures: an in-memory store and a scripted planning oracle."""

from __future__ import annotations

import json
from typing import Any, Callable

import pytest

from dkgquery.cache import DiscoveryCache
from dkgquery.models import OracleMessage, ToolCall
from dkgquery.oracle import PlanningOracle

PRODUCT = "http://schema.org/Product"


class FakeStore:
    """Store stub routing queries to canned rows by a marker in the text.

    ``routes`` is a list of ``(marker, response)``; the first marker found
    in the query wins.  A response is a list of rows, an exception to
    raise, or a callable taking the query text.
    """

    def __init__(self, routes: list[tuple[str, Any]] | None = None, default: Any = None):
        self.routes = routes or []
        self.default = default if default is not None else []
        self.queries: list[str] = []

    def query(self, sparql: str, query_type: str = "SELECT") -> dict[str, Any]:
        self.queries.append(sparql)
        response = self.default
        for marker, candidate in self.routes:
            if marker in sparql:
                response = candidate
                break
        if callable(response) and not isinstance(response, list):
            response = response(sparql)
        if isinstance(response, Exception):
            raise response
        return {"data": [dict(row) for row in response]}


class ScriptedOracle(PlanningOracle):
    """Oracle returning pre-scripted rounds; an exception in the script is raised."""

    def __init__(self, rounds: list[Any], answer: str | Callable | None = None):
        self.rounds = list(rounds)
        self.contexts = []
        self.answer = answer

    def plan(self, context):
        self.contexts.append(context)
        if not self.rounds:
            return []
        step = self.rounds.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    def synthesize_answer(self, question, outcome):
        if isinstance(self.answer, Exception):
            raise self.answer
        if self.answer is not None:
            return self.answer
        return super().synthesize_answer(question, outcome)


def tool_message(name: str, **arguments: Any) -> list[OracleMessage]:
    """One planning round made of a single tool call."""
    return [
        OracleMessage(
            tool_calls=[ToolCall(id=f"call-{name}", name=name, arguments=json.dumps(arguments))]
        )
    ]


def execute(sparql: str) -> list[OracleMessage]:
    return tool_message("execute_query", sparql=sparql)


@pytest.fixture()
def cache():
    return DiscoveryCache()


@pytest.fixture()
def product_store():
    """Store holding 500 schema:Product instances."""
    return FakeStore(
        routes=[
            ("SELECT ?type", [{"type": PRODUCT, "count": 500}]),
            ("SELECT ?predicate", [{"predicate": "http://schema.org/name", "count": 500}]),
            ("COUNT(", [{"count": 500}]),
        ]
    )
