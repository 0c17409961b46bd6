"""Tests for writing query structures back to SPARQL text."""

import pytest
from rdflib import Literal, URIRef, Variable
from rdflib.namespace import RDF

from dkgquery.sparql import (
    SparqlSerializeError,
    bind_parameters,
    create_simple_select_query,
    iter_triples,
    parse_sparql,
    serialize_query,
)

ROUND_TRIP_QUERIES = [
    "SELECT ?s WHERE { ?s ?p ?o }",
    """
    PREFIX schema: <http://schema.org/>
    SELECT DISTINCT ?product ?name WHERE {
      ?product a schema:Product ;
               schema:name ?name .
    }
    ORDER BY DESC(?name)
    LIMIT 25
    OFFSET 5
    """,
    """
    SELECT ?type (COUNT(?s) AS ?count) WHERE { ?s a ?type }
    GROUP BY ?type
    ORDER BY DESC(?count)
    LIMIT 15
    """,
    """
    PREFIX ex: <http://example.org/>
    SELECT ?s ?label WHERE {
      ?s ex:price ?price .
      OPTIONAL { ?s ex:label ?label }
      { ?s a ex:A } UNION { ?s a ex:B }
      FILTER(?price > 100 && CONTAINS(LCASE(STR(?label)), "red"))
    }
    """,
    "SELECT ?o WHERE { ?s (<http://example.org/a>|<http://example.org/b>)/^<http://example.org/c>* ?o }",
    """
    SELECT ?s ?label WHERE {
      ?s <http://example.org/p> ?o .
      BIND(STR(?o) AS ?label)
    }
    VALUES ?s { <http://example.org/a> }
    """,
    "SELECT ?s WHERE { SELECT ?s WHERE { ?s ?p ?o } LIMIT 1 }",
    'SELECT ?s WHERE { ?s ?p ?o FILTER(?o = "say \\"hi\\"\\n") }',
    "SELECT ?s WHERE { ?s ?p ?o FILTER NOT EXISTS { ?s a <http://example.org/Hidden> } }",
    'SELECT (GROUP_CONCAT(?n; SEPARATOR=", ") AS ?names) WHERE { ?s ?p ?n }',
    "SELECT ?s WHERE { GRAPH ?g { ?s ?p ?o } MINUS { ?s a <http://example.org/X> } }",
    'SELECT ?s WHERE { ?s ?p ?o FILTER(REGEX(?o, "^a", "i") || ?o IN (1, 2)) }',
]


class TestRoundTrip:
    """serialize(parse(text)) re-parses to an equivalent query."""

    @pytest.mark.parametrize("text", ROUND_TRIP_QUERIES)
    def test_round_trip_preserves_shape(self, text):
        original = parse_sparql(text)
        again = parse_sparql(serialize_query(original))

        assert again.result_variables == original.result_variables
        assert len(list(iter_triples(again.where))) == len(list(iter_triples(original.where)))
        assert again.limit == original.limit
        assert again.offset == original.offset
        assert len(again.order) == len(original.order)
        assert len(again.group) == len(original.group)
        assert again.distinct == original.distinct

    @pytest.mark.parametrize("text", ROUND_TRIP_QUERIES[:4])
    def test_round_trip_is_structurally_equal(self, text):
        original = parse_sparql(text)
        assert parse_sparql(serialize_query(original)).where == original.where

    def test_serialization_is_stable(self):
        text = serialize_query(parse_sparql(ROUND_TRIP_QUERIES[3]))
        assert serialize_query(parse_sparql(text)) == text


class TestOutput:
    def test_rdf_type_written_as_a(self):
        query = create_simple_select_query(
            ["?s"], [("?s", str(RDF.type), "http://schema.org/Product")]
        )
        assert "?s a <http://schema.org/Product> ." in serialize_query(query)

    def test_prefixes_compact_iris(self):
        query = create_simple_select_query(
            ["?s"],
            [("?s", "http://schema.org/name", "?name")],
            prefixes={"schema": "http://schema.org/"},
        )
        text = serialize_query(query)
        assert text.startswith("PREFIX schema: <http://schema.org/>")
        assert "?s schema:name ?name ." in text

    def test_unsafe_local_names_stay_full_iris(self):
        query = create_simple_select_query(
            ["?s"],
            [("?s", "http://schema.org/version/1.0", "?v")],
            prefixes={"schema": "http://schema.org/"},
        )
        assert "<http://schema.org/version/1.0>" in serialize_query(query)

    def test_literal_forms(self):
        query = parse_sparql(
            'SELECT ?s WHERE { ?s ?p "chat"@fr . ?s ?q 42 . ?s ?r true . ?s ?t "x"^^<http://example.org/dt> }'
        )
        text = serialize_query(query)
        assert '"chat"@fr' in text
        assert "?q 42 ." in text
        assert "?r true ." in text
        assert '"x"^^<http://example.org/dt>' in text

    def test_non_select_cannot_be_serialized(self):
        with pytest.raises(SparqlSerializeError):
            serialize_query(parse_sparql("ASK { ?s ?p ?o }"))

    def test_unknown_pattern_is_rejected(self):
        query = create_simple_select_query(["?s"], [("?s", "?p", "?o")])
        query.where.append(object())
        with pytest.raises(SparqlSerializeError):
            serialize_query(query)


class TestBuilders:
    def test_create_simple_select_query(self):
        query = create_simple_select_query(
            ["?s", "name"], [("?s", "http://schema.org/name", "?name")]
        )
        assert query.result_variables == ["s", "name"]
        triple = query.where[0].triples[0]
        assert triple.subject == Variable("s")
        assert triple.predicate == URIRef("http://schema.org/name")

    def test_bind_parameters_substitutes_where_only(self):
        template = parse_sparql(
            "SELECT ?predicate WHERE { ?s a ?classUri . ?s ?predicate ?o . "
            "FILTER(CONTAINS(STR(?predicate), ?keyword)) }"
        )
        bound = bind_parameters(
            template,
            {"classUri": URIRef("http://schema.org/Product"), "?keyword": "name"},
        )

        triples = list(iter_triples(bound.where))
        assert triples[0].object == URIRef("http://schema.org/Product")
        assert bound.where[1].expression.args[1] == Literal("name")
        assert bound.result_variables == ["predicate"]
        # The template itself is untouched
        assert list(iter_triples(template.where))[0].object == Variable("classUri")

    def test_bound_values_are_terms_not_text(self):
        template = parse_sparql('SELECT ?s WHERE { ?s ?p ?keyword }')
        bound = bind_parameters(template, {"keyword": 'x" } ; DROP ALL'})
        text = serialize_query(bound)
        assert parse_sparql(text).where[0].triples[0].object == Literal('x" } ; DROP ALL')
