"""Tests for one-shot query execution and the public API helpers."""

from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from conftest import PRODUCT, ScriptedOracle

from dkgquery import api
from dkgquery.cache import DiscoveryCache
from dkgquery.config import TestConfig
from dkgquery.query import ResultCell, execute_sparql, prepare_query
from dkgquery.sparql import SparqlError, is_wrapped, parse_sparql

ENDPOINT = "http://test.example.org/sparql"

RESULTS = {
    "head": {"vars": ["name", "price"]},
    "results": {
        "bindings": [
            {
                "name": {"type": "literal", "value": "Phone", "xml:lang": "en"},
                "price": {
                    "type": "literal",
                    "datatype": "http://www.w3.org/2001/XMLSchema#decimal",
                    "value": "99.5",
                },
            },
            {"name": {"type": "literal", "value": "Case"}},
        ]
    },
}


def session_returning(mock_session_cls, payload=RESULTS):
    mock_session = MagicMock()
    mock_session_cls.return_value = mock_session
    resp = MagicMock()
    resp.status_code = 200
    resp.text = json.dumps(payload)
    resp.raise_for_status = MagicMock()
    mock_session.get.return_value = resp
    return mock_session


class TestPrepareQuery:
    def test_unchanged_without_wrap_or_limit(self):
        text = "ASK { ?s ?p ?o }"
        assert prepare_query(text, wrap=False) == text

    def test_wrap(self):
        assert is_wrapped(parse_sparql(prepare_query("SELECT ?s WHERE { ?s ?p ?o }")))

    def test_limit_without_wrap(self):
        sent = prepare_query("SELECT ?s WHERE { ?s ?p ?o } LIMIT 500", wrap=False, limit=5)
        parsed = parse_sparql(sent)
        assert parsed.limit == 5
        assert not is_wrapped(parsed)

    def test_already_wrapped(self):
        once = prepare_query("SELECT ?s WHERE { ?s ?p ?o }")
        assert prepare_query(once) == once

    def test_non_select(self):
        with pytest.raises(SparqlError, match="Only SELECT"):
            prepare_query("ASK { ?s ?p ?o }")


@patch("dkgquery.sparql_helper.requests.Session")
class TestExecuteSparql:
    def test_rows(self, mock_session_cls):
        mock_session = session_returning(mock_session_cls)

        result = execute_sparql("SELECT ?name ?price WHERE { ?p ?x ?name }", ENDPOINT)

        assert result.success
        assert result.wrapped
        assert result.variables == ["name", "price"]
        assert result.row_count == 2
        assert result.rows[0]["name"].lang == "en"
        assert result.plain_rows()[0]["price"] == Decimal("99.5")
        assert "price" not in result.rows[1]
        sent = mock_session.get.call_args.kwargs["params"]["query"]
        assert "<current:graph>" in sent
        assert sent == result.query

    def test_post_method(self, mock_session_cls):
        mock_session = session_returning(mock_session_cls)
        mock_session.post.return_value = mock_session.get.return_value

        execute_sparql("SELECT ?s WHERE { ?s ?p ?o }", ENDPOINT, method="POST")

        mock_session.post.assert_called_once()
        mock_session.get.assert_not_called()

    def test_invalid_query_is_not_sent(self, mock_session_cls):
        mock_session = session_returning(mock_session_cls)

        result = execute_sparql("SELECT ?s WHERE { ?s ?p }", ENDPOINT)

        assert not result.success
        assert result.error
        assert result.row_count == 0
        mock_session.get.assert_not_called()

    def test_store_error_is_reported(self, mock_session_cls):
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        resp = MagicMock()
        resp.status_code = 400
        resp.text = "Malformed query"
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
        mock_session.get.return_value = resp

        result = execute_sparql("SELECT ?s WHERE { ?s ?p ?o }", ENDPOINT)

        assert not result.success
        assert "Malformed query" in result.error


class TestResultCell:
    def test_to_python(self):
        assert ResultCell(value="http://x.org/a", type="uri").to_python() == "http://x.org/a"
        cell = ResultCell(
            value="7", type="literal", datatype="http://www.w3.org/2001/XMLSchema#integer"
        )
        assert cell.to_python() == 7


class TestApi:
    def test_validate_and_wrap(self):
        assert api.validate_query("SELECT ?s WHERE { ?s ?p ?o }").valid
        assert not api.validate_query("SELECT ?s WHERE {").valid
        assert api.wrap_query("SELECT ?s WHERE { ?s ?p ?o }").success

    def test_discovery_library_over_store(self, product_store):
        cache = DiscoveryCache()
        library = api.get_discovery_library(store=product_store, cache=cache)
        result = library.list_classes()
        assert result.classes[0].type == PRODUCT
        assert library.cache is cache

    @patch("dkgquery.api.execute_sparql")
    def test_execute_query_uses_configured_endpoint(self, mock_execute):
        api.execute_query("SELECT ?s WHERE { ?s ?p ?o }", limit=3)
        args, kwargs = mock_execute.call_args
        assert args[1] == api.Config.SPARQL_ENDPOINT
        assert kwargs["limit"] == 3
        assert kwargs["wrap"] is True

    @patch("dkgquery.sparql_helper.requests.Session")
    def test_ask_without_answer(self, mock_session_cls):
        session_returning(mock_session_cls, {"head": {"vars": []}, "results": {"bindings": []}})

        answer = api.ask(
            "How many products exist?",
            oracle=ScriptedOracle([]),
            max_iterations=1,
            config=TestConfig,
        )

        assert not answer.success
        assert answer.error == "No response from agent (after 1 attempts)"
        sent = mock_session_cls.return_value.get.call_args.args[0]
        assert sent == TestConfig.SPARQL_ENDPOINT

