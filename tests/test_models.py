"""Tests for the schema snapshot and result models."""

import pytest
from pydantic import ValidationError

from dkgquery.models import (
    NO_QUERY_SENTINEL,
    ClassInfo,
    DiscoveredSchema,
    IterationAttempt,
    PredicateInfo,
    QueryOutcome,
    SampleTriple,
)

PRODUCT = "http://schema.org/Product"
NAME = "http://schema.org/name"


class TestDiscoveredSchema:
    def test_merge_classes_returns_new_uris(self):
        schema = DiscoveredSchema()
        added = schema.merge_classes(
            [ClassInfo(type=PRODUCT, count=500), ClassInfo(type=PRODUCT, count=1)]
        )
        assert added == [PRODUCT]
        assert len(schema.classes) == 1

    def test_first_observed_count_is_kept(self):
        schema = DiscoveredSchema()
        schema.merge_classes([ClassInfo(type=PRODUCT, count=500)])
        assert schema.merge_classes([ClassInfo(type=PRODUCT, count=900)]) == []
        assert schema.classes[0].count == 500

    def test_merge_predicates_dedupes(self):
        schema = DiscoveredSchema()
        schema.merge_predicates([PredicateInfo(predicate=NAME, count=3)])
        added = schema.merge_predicates(
            [PredicateInfo(predicate=NAME), PredicateInfo(predicate="urn:p")]
        )
        assert added == ["urn:p"]
        assert [p.predicate for p in schema.predicates] == [NAME, "urn:p"]

    def test_samples_feed_predicates(self):
        schema = DiscoveredSchema()
        sample = SampleTriple(subject="urn:a", predicate=NAME, object="Phone")
        assert schema.merge_samples([sample, sample]) == [NAME]
        assert schema.samples == [sample]

    def test_extensions_feed_predicates(self):
        schema = DiscoveredSchema()
        added = schema.merge_extensions(
            PRODUCT, [{"property": "http://schema.org/brand"}, {"other": "x"}]
        )
        assert added == ["http://schema.org/brand"]
        assert len(schema.extensions[PRODUCT]) == 2

    def test_top_class_and_empty(self):
        schema = DiscoveredSchema()
        assert schema.is_empty()
        assert schema.top_class is None
        schema.merge_classes([ClassInfo(type=PRODUCT, count=1)])
        assert not schema.is_empty()
        assert schema.top_class.type == PRODUCT


class TestRecords:
    def test_iteration_attempt_defaults(self):
        attempt = IterationAttempt(iteration=1, error="No response from agent")
        assert attempt.sparql_attempted == NO_QUERY_SENTINEL
        assert not attempt.produced_query

    def test_iteration_attempt_is_frozen(self):
        attempt = IterationAttempt(iteration=1)
        with pytest.raises(ValidationError):
            attempt.error = "changed"

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            ClassInfo(type=PRODUCT, count=-1)

    def test_outcome_executed_queries_are_distinct(self):
        outcome = QueryOutcome(success=False, executed_queries=["a", "b", "a"])
        assert outcome.executed_queries == ["a", "b"]
