"""Tests for decoding oracle tool calls into actions."""

import pytest

from dkgquery.actions import (
    ActionDecodeError,
    DiscoverClasses,
    DiscoverExtensions,
    DiscoverPredicates,
    ExecuteQuery,
    PlainAnswer,
    SampleData,
    decode_messages,
    decode_tool_call,
)
from dkgquery.models import OracleMessage, ToolCall

PRODUCT = "http://schema.org/Product"


class TestDecodeToolCall:
    def test_discover_classes_keywords_string(self):
        action = decode_tool_call(
            ToolCall(name="discover_classes", arguments='{"limit": 5, "keywords": "product, offer"}')
        )
        assert action == DiscoverClasses(limit=5, keywords=["product", "offer"])

    def test_discover_classes_without_arguments(self):
        action = decode_tool_call(ToolCall(name="discover_classes", arguments=""))
        assert isinstance(action, DiscoverClasses)
        assert action.limit is None

    def test_discover_predicates_camel_case(self):
        action = decode_tool_call(
            ToolCall(name="discover_predicates", arguments={"classUri": PRODUCT})
        )
        assert isinstance(action, DiscoverPredicates)
        assert action.class_uri == PRODUCT

    def test_discover_predicates_needs_a_target(self):
        with pytest.raises(ActionDecodeError, match="discover_predicates"):
            decode_tool_call(ToolCall(name="discover_predicates", arguments={}))

    def test_sample_and_extensions(self):
        sample = decode_tool_call(
            ToolCall(name="sample_data", arguments={"class_uri": PRODUCT, "limit": 3})
        )
        assert sample == SampleData(class_uri=PRODUCT, limit=3)
        extensions = decode_tool_call(
            ToolCall(name="discover_extensions", arguments={"classUri": PRODUCT})
        )
        assert extensions == DiscoverExtensions(class_uri=PRODUCT)

    def test_execute_query_alias(self):
        action = decode_tool_call(
            ToolCall(name="execute_query", arguments='{"query": "SELECT * WHERE { ?s ?p ?o }"}')
        )
        assert action == ExecuteQuery(sparql="SELECT * WHERE { ?s ?p ?o }")

    def test_extra_arguments_ignored(self):
        action = decode_tool_call(
            ToolCall(name="execute_query", arguments={"sparql": "SELECT ?s WHERE {}", "why": "x"})
        )
        assert action.sparql == "SELECT ?s WHERE {}"

    def test_empty_query_rejected(self):
        with pytest.raises(ActionDecodeError):
            decode_tool_call(ToolCall(name="execute_query", arguments={"sparql": ""}))

    def test_unknown_tool(self):
        with pytest.raises(ActionDecodeError, match="unknown tool") as excinfo:
            decode_tool_call(ToolCall(name="drop_graph", arguments={}))
        assert excinfo.value.tool == "drop_graph"

    def test_plain_answer_is_not_a_tool(self):
        with pytest.raises(ActionDecodeError):
            decode_tool_call(ToolCall(name="plain_answer", arguments={"text": "hi"}))

    @pytest.mark.parametrize("arguments", ["{not json", "[1, 2]", "42"])
    def test_malformed_arguments(self, arguments):
        with pytest.raises(ActionDecodeError):
            decode_tool_call(ToolCall(name="discover_classes", arguments=arguments))


class TestDecodeMessages:
    def test_order_is_kept(self):
        messages = [
            OracleMessage(
                tool_calls=[
                    ToolCall(name="discover_classes", arguments={}),
                    ToolCall(name="execute_query", arguments={"sparql": "SELECT ?s WHERE {}"}),
                ]
            )
        ]
        actions, errors = decode_messages(messages)
        assert [type(a) for a in actions] == [DiscoverClasses, ExecuteQuery]
        assert errors == []

    def test_text_becomes_plain_answer(self):
        actions, errors = decode_messages([OracleMessage(content="  I am not sure.  ")])
        assert actions == [PlainAnswer(text="I am not sure.")]
        assert errors == []

    def test_blank_text_is_dropped(self):
        assert decode_messages([OracleMessage(content="   ")]) == ([], [])

    def test_bad_call_does_not_abort_round(self):
        messages = [
            OracleMessage(
                tool_calls=[
                    ToolCall(name="execute_query", arguments="{oops"),
                    ToolCall(name="discover_classes", arguments={}),
                ]
            )
        ]
        actions, errors = decode_messages(messages)
        assert [type(a) for a in actions] == [DiscoverClasses]
        assert len(errors) == 1
        assert errors[0].startswith("Invalid call to execute_query")
