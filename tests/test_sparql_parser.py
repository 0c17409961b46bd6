"""Tests for parsing SPARQL text into query structures."""

import pytest
from rdflib import Literal, URIRef, Variable
from rdflib.namespace import RDF, XSD

from dkgquery.sparql import (
    Aggregate,
    BgpPattern,
    FilterPattern,
    GraphPattern,
    Operation,
    OptionalPattern,
    ProjectedExpression,
    PropertyPath,
    SparqlParseError,
    SubQueryPattern,
    UnionPattern,
    ValuesPattern,
    iter_triples,
    parse_sparql,
)

SCHEMA = "http://schema.org/"


class TestSelect:
    """SELECT queries are converted in full."""

    def test_projection_and_triples(self):
        query = parse_sparql("SELECT ?s ?o WHERE { ?s ?p ?o }")
        assert query.is_select
        assert query.result_variables == ["s", "o"]
        assert len(query.where) == 1
        bgp = query.where[0]
        assert isinstance(bgp, BgpPattern)
        triple = bgp.triples[0]
        assert triple.subject == Variable("s")
        assert triple.predicate == Variable("p")
        assert triple.object == Variable("o")

    def test_select_star(self):
        query = parse_sparql("SELECT * WHERE { ?s ?p ?o }")
        assert query.variables == []

    def test_prefixed_names_are_resolved(self):
        query = parse_sparql(
            "PREFIX schema: <http://schema.org/>\n"
            "SELECT ?name WHERE { ?s a schema:Product ; schema:name ?name }"
        )
        assert query.prefixes == {"schema": SCHEMA}
        triples = list(iter_triples(query.where))
        assert triples[0].predicate == RDF.type
        assert triples[0].object == URIRef(SCHEMA + "Product")
        assert triples[1].predicate == URIRef(SCHEMA + "name")

    def test_modifiers(self):
        query = parse_sparql(
            "SELECT DISTINCT ?s WHERE { ?s ?p ?o } ORDER BY DESC(?s) LIMIT 10 OFFSET 5"
        )
        assert query.distinct
        assert query.limit == 10
        assert query.offset == 5
        assert len(query.order) == 1
        assert query.order[0].descending
        assert query.order[0].expression == Variable("s")

    def test_aggregate_projection_and_grouping(self):
        query = parse_sparql(
            "SELECT ?type (COUNT(DISTINCT ?s) AS ?count) WHERE { ?s a ?type } "
            "GROUP BY ?type HAVING (COUNT(?s) > 1)"
        )
        projected = query.variables[1]
        assert isinstance(projected, ProjectedExpression)
        assert projected.variable == Variable("count")
        assert isinstance(projected.expression, Aggregate)
        assert projected.expression.aggregation == "count"
        assert projected.expression.distinct
        assert query.group[0].expression == Variable("type")
        assert len(query.having) == 1

    def test_count_star(self):
        query = parse_sparql("SELECT (COUNT(*) AS ?n) WHERE { ?s ?p ?o }")
        assert query.variables[0].expression.expression == "*"

    def test_filter_optional_union(self):
        query = parse_sparql(
            "SELECT ?s WHERE {"
            "  ?s ?p ?o ."
            "  OPTIONAL { ?s <http://example.org/label> ?label }"
            "  { ?s a <http://example.org/A> } UNION { ?s a <http://example.org/B> }"
            '  FILTER(CONTAINS(LCASE(STR(?o)), "x"))'
            "}"
        )
        kinds = [type(p) for p in query.where]
        assert OptionalPattern in kinds
        assert UnionPattern in kinds
        filters = [p for p in query.where if isinstance(p, FilterPattern)]
        assert filters[0].expression.operator == "contains"
        union = next(p for p in query.where if isinstance(p, UnionPattern))
        assert len(union.patterns) == 2

    def test_graph_pattern(self):
        query = parse_sparql("SELECT ?s WHERE { GRAPH ?g { ?s ?p ?o } }")
        assert isinstance(query.where[0], GraphPattern)
        assert query.where[0].name == Variable("g")

    def test_property_path(self):
        query = parse_sparql(
            "SELECT ?o WHERE { ?s <http://example.org/a>/<http://example.org/b>+ ?o }"
        )
        path = query.where[0].triples[0].predicate
        assert isinstance(path, PropertyPath)
        assert path.kind == "/"
        assert path.items[0] == URIRef("http://example.org/a")
        assert path.items[1].kind == "+"

    def test_literals(self):
        query = parse_sparql(
            'SELECT ?s WHERE { ?s ?p "chat"@fr . ?s ?q 42 . '
            'FILTER(?x != "2020-01-01"^^<http://www.w3.org/2001/XMLSchema#date>) }'
        )
        triples = query.where[0].triples
        assert triples[0].object == Literal("chat", lang="fr")
        assert triples[1].object == Literal("42", datatype=XSD.integer)
        relation = query.where[1].expression
        assert isinstance(relation, Operation)
        assert relation.operator == "!="

    def test_in_operator(self):
        query = parse_sparql("SELECT ?s WHERE { ?s ?p ?o FILTER(?o IN (1, 2)) }")
        operation = query.where[1].expression
        assert operation.operator == "in"
        assert len(operation.args[1]) == 2

    def test_values_clause(self):
        query = parse_sparql(
            "SELECT ?s WHERE { VALUES ?s { <http://example.org/a> <http://example.org/b> } }"
        )
        values = query.where[0]
        assert isinstance(values, ValuesPattern)
        assert [row["s"] for row in values.rows] == [
            URIRef("http://example.org/a"),
            URIRef("http://example.org/b"),
        ]

    def test_subquery(self):
        query = parse_sparql("SELECT ?s WHERE { SELECT ?s WHERE { ?s ?p ?o } LIMIT 1 }")
        nested = query.where[0]
        assert isinstance(nested, SubQueryPattern)
        assert nested.query.limit == 1


class TestOtherForms:
    """Non-SELECT forms keep only their type and prologue."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("ASK { ?s ?p ?o }", "ASK"),
            ("CONSTRUCT { ?s ?p ?o } WHERE { ?s ?p ?o }", "CONSTRUCT"),
            ("DESCRIBE <http://example.org/a>", "DESCRIBE"),
            ("INSERT DATA { <http://example.org/a> <http://example.org/b> 1 }", "UPDATE"),
        ],
    )
    def test_query_type(self, text, expected):
        query = parse_sparql(text)
        assert query.query_type == expected
        assert not query.is_select


class TestErrors:
    def test_malformed_triple(self):
        with pytest.raises(SparqlParseError):
            parse_sparql("SELECT ?s WHERE { ?s ?p }")

    def test_unknown_prefix(self):
        with pytest.raises(SparqlParseError, match="Unknown prefix"):
            parse_sparql("SELECT ?s WHERE { ?s ex:p ?o }")

    def test_empty_text(self):
        with pytest.raises(SparqlParseError):
            parse_sparql("   ")

    def test_non_string_input(self):
        with pytest.raises(TypeError):
            parse_sparql(None)
