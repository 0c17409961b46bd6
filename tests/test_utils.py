"""Tests for URI, keyword and count helpers."""

import pytest

from dkgquery.utils import (
    compact_uri,
    expand_curie,
    extract_number,
    get_local_name,
    is_absolute_iri,
    sanitize_keyword,
    shorten_for_display,
)


class TestExtractNumber:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (500, 500),
            ("42", 42),
            ('"42"^^<http://www.w3.org/2001/XMLSchema#integer>', 42),
            (None, 0),
            ("n/a", 0),
            (True, 1),
        ],
    )
    def test_values(self, value, expected):
        assert extract_number(value) == expected


class TestKeywords:
    def test_sanitize_strips_quotes_and_backslashes(self):
        assert sanitize_keyword(' Na"me\'\\ ') == "name"

    def test_sanitize_keeps_inner_spaces(self):
        assert sanitize_keyword("Date Published") == "date published"


class TestUris:
    @pytest.mark.parametrize(
        "value", ["http://schema.org/Product", "urn:isbn:123", "did:dkg:otp/0x1/2"]
    )
    def test_absolute_iris(self, value):
        assert is_absolute_iri(value)

    @pytest.mark.parametrize(
        "value", ["", "Product", "http://schema.org/ Product", "http://x.org/<a>", "schema"]
    )
    def test_not_absolute_iris(self, value):
        assert not is_absolute_iri(value)

    def test_local_name(self):
        assert get_local_name("http://schema.org/Product") == "Product"
        assert get_local_name("http://www.w3.org/ns/prov#Entity") == "Entity"

    def test_compact_and_expand(self):
        assert compact_uri("http://schema.org/name") == "schema:name"
        assert compact_uri("http://example.org/x") == "http://example.org/x"
        assert expand_curie("schema:Product") == "http://schema.org/Product"
        assert expand_curie("<http://schema.org/Product>") == "http://schema.org/Product"
        assert expand_curie("http://schema.org/Product") == "http://schema.org/Product"
        assert expand_curie("unknown:Thing") == "unknown:Thing"

    def test_shorten_for_display(self):
        assert shorten_for_display("http://schema.org/name") == "schema:name"
        assert shorten_for_display("http://example.org/vocab/size") == "size"
