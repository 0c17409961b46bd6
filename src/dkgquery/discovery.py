"""
Discovery query library.

A fixed set of query templates that ask the store what it contains: which
classes exist, which predicates a class or keyword uses, what instances of
a class look like, and which ontology-specific extension properties are in
use.  Every template runs inside the DKG graph envelope.

Templates are ordinary SPARQL whose parameters are variables
(``?classUri``, ``?keyword``).  They are parsed once and parameterized with
:func:`~dkgquery.sparql.bind_parameters`, so caller input only ever reaches
the query as an RDF term.

Usage:
    from dkgquery.discovery import DiscoveryLibrary
    from dkgquery.sparql_helper import SparqlHelper

    library = DiscoveryLibrary(SparqlHelper(endpoint))
    result = library.list_classes(limit=15)
    for info in result.classes:
        print(info.type, info.count)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from functools import lru_cache
from typing import Any

from rdflib import Literal, URIRef, Variable

from .cache import DiscoveryCache
from .models import ClassInfo, DiscoveryResult, PredicateInfo, SampleTriple
from .sparql import (
    FilterPattern,
    Operation,
    SparqlQuery,
    bind_parameters,
    parse_sparql,
    serialize_query,
    wrap_with_graph_envelope,
)
from .sparql_helper import GraphStore
from .utils import extract_number, is_absolute_iri, sanitize_keyword

logger = logging.getLogger(__name__)

DEFAULT_CLASS_LIMIT = 30
DEFAULT_KEYWORD_CLASS_LIMIT = 20
DEFAULT_PREDICATE_LIMIT = 50
DEFAULT_SAMPLE_LIMIT = 20
SAMPLE_PREVIEW = 10

CLASS_PARAM = "classUri"
KEYWORD_PARAM = "keyword"

# ── Templates ────────────────────────────────────────────────────────────

TEMPLATES: dict[str, str] = {
    "classes": """
        SELECT ?type (COUNT(?s) AS ?count) WHERE {
          ?s a ?type .
        }
        GROUP BY ?type
        ORDER BY DESC(?count)
    """,
    "predicates_for_class": """
        SELECT ?predicate (COUNT(?predicate) AS ?count) WHERE {
          ?s a ?classUri .
          ?s ?predicate ?o .
        }
        GROUP BY ?predicate
        ORDER BY DESC(?count)
    """,
    "predicates_by_keyword": """
        SELECT ?predicate (COUNT(?predicate) AS ?count) WHERE {
          ?s ?predicate ?o .
          FILTER(CONTAINS(LCASE(STR(?predicate)), ?keyword))
        }
        GROUP BY ?predicate
        ORDER BY DESC(?count)
    """,
    "samples": """
        SELECT ?subject ?predicate ?object WHERE {
          ?subject a ?classUri .
          ?subject ?predicate ?object .
        }
    """,
    # Extension discovery, one template per ontology
    "extensions_schema": """
        PREFIX schema: <http://schema.org/>
        SELECT ?propertyID (COUNT(?instance) AS ?usage) WHERE {
          ?instance a ?classUri .
          ?instance schema:additionalProperty ?prop .
          ?prop schema:propertyID ?propertyID .
        }
        GROUP BY ?propertyID
        ORDER BY DESC(?usage)
    """,
    "extensions_prov": """
        SELECT DISTINCT ?property WHERE {
          ?entity a ?classUri .
          ?entity ?property ?value .
          FILTER(!STRSTARTS(STR(?property), "http://www.w3.org/ns/prov#"))
          FILTER(!STRSTARTS(STR(?property), "http://www.w3.org/1999/02/22-rdf-syntax-ns#"))
        }
    """,
    "extensions_dcterms": """
        PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
        SELECT DISTINCT ?property ?superProperty WHERE {
          ?instance a ?classUri .
          ?instance ?property ?value .
          OPTIONAL { ?property rdfs:subPropertyOf ?superProperty }
          FILTER(STRSTARTS(STR(?property), "http://purl.org/dc/"))
        }
    """,
    "extensions_foaf": """
        SELECT DISTINCT ?property WHERE {
          ?instance a ?classUri .
          ?instance ?property ?value .
          FILTER(STRSTARTS(STR(?property), "http://xmlns.com/foaf/"))
        }
    """,
    "extensions_skos": """
        SELECT DISTINCT ?property WHERE {
          ?concept a ?classUri .
          ?concept ?property ?value .
          FILTER(
            STRSTARTS(STR(?property), "http://www.w3.org/2004/02/skos/") ||
            STRSTARTS(STR(?property), "http://rdf-vocabulary.ddialliance.org/xkos#")
          )
        }
    """,
    "extensions_owl": """
        PREFIX owl: <http://www.w3.org/2002/07/owl#>
        SELECT DISTINCT ?equivalent WHERE {
          { ?classUri owl:equivalentClass ?equivalent . }
          UNION
          { ?equivalent owl:equivalentClass ?classUri . }
        }
    """,
    "extensions_generic": """
        SELECT ?property (COUNT(?instance) AS ?usage) WHERE {
          ?instance a ?classUri .
          ?instance ?property ?value .
        }
        GROUP BY ?property
        ORDER BY DESC(?usage)
    """,
}

# Namespace fragments identifying each ontology, checked in order
ONTOLOGY_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("schema", ("schema.org",)),
    ("prov", ("w3.org/ns/prov",)),
    ("dcterms", ("purl.org/dc/terms", "purl.org/dc/elements")),
    ("foaf", ("xmlns.com/foaf",)),
    ("skos", ("w3.org/2004/02/skos",)),
    ("owl", ("w3.org/2002/07/owl",)),
]


def detect_ontology(class_uri: str) -> str:
    """Name of the well-known ontology a class URI belongs to, or ``"generic"``."""
    for name, markers in ONTOLOGY_MARKERS:
        if any(marker in class_uri for marker in markers):
            return name
    return "generic"


@lru_cache(maxsize=None)
def _template(name: str) -> SparqlQuery:
    return parse_sparql(TEMPLATES[name])


def build_discovery_query(
    name: str,
    *,
    class_uri: str | None = None,
    keyword: str | None = None,
    limit: int | None = None,
    class_keywords: list[str] | None = None,
) -> str:
    """
    Render a discovery template as enveloped SPARQL text.

    Args:
        name: Template name (a key of :data:`TEMPLATES`)
        class_uri: Value bound to ``?classUri``
        keyword: Value bound to ``?keyword`` (already sanitized)
        limit: LIMIT of the rendered query
        class_keywords: Optional keywords the ``?type`` of the classes
            template must contain (any of them)

    Returns:
        SPARQL text ready for the store
    """
    bindings: dict[str, Any] = {}
    if class_uri is not None:
        bindings[CLASS_PARAM] = URIRef(class_uri)
    if keyword is not None:
        bindings[KEYWORD_PARAM] = Literal(keyword)

    query = bind_parameters(_template(name), bindings)
    if class_keywords:
        query = replace(query, where=[*query.where, _type_keyword_filter(class_keywords)])
    if limit is not None:
        query = replace(query, limit=int(limit))
    return serialize_query(wrap_with_graph_envelope(query))


def _type_keyword_filter(keywords: list[str]) -> FilterPattern:
    """``FILTER(CONTAINS(LCASE(STR(?type)), "kw1") || ...)``"""
    type_text = Operation("lcase", [Operation("str", [Variable("type")])])
    tests = [Operation("contains", [type_text, Literal(kw)]) for kw in keywords]
    return FilterPattern(tests[0] if len(tests) == 1 else Operation("||", tests))


class DiscoveryLibrary:
    """Runs discovery templates against a store and maps the rows.

    Store failures never raise out of this class: each operation returns a
    :class:`~dkgquery.models.DiscoveryResult` whose ``success`` flag and
    ``error`` describe what happened.  Zero rows is a success with an empty
    list and a hint in ``message``.

    Args:
        store: Object implementing the store contract
        cache: Discovery cache consulted before, and filled after, a query
        class_limit: Default LIMIT for class listing
        predicate_limit: Default LIMIT for predicate listing
        sample_limit: Default LIMIT for sample triples
    """

    def __init__(
        self,
        store: GraphStore,
        cache: DiscoveryCache | None = None,
        *,
        class_limit: int = DEFAULT_CLASS_LIMIT,
        predicate_limit: int = DEFAULT_PREDICATE_LIMIT,
        sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    ) -> None:
        self.store = store
        self.cache = cache
        self.class_limit = class_limit
        self.predicate_limit = predicate_limit
        self.sample_limit = sample_limit

    def _select(self, sparql: str) -> list[dict[str, Any]]:
        result = self.store.query(sparql, "SELECT")
        return list(result.get("data") or [])

    # ── Classes ──────────────────────────────────────────────────────────

    def list_classes(
        self, limit: int | None = None, keywords: list[str] | None = None
    ) -> DiscoveryResult:
        """List classes by instance count, optionally filtered by keywords."""
        terms = [sanitize_keyword(k) for k in keywords or []]
        terms = [t for t in terms if t]
        if keywords and not terms:
            return DiscoveryResult(
                kind="classes", success=False, error="No usable keywords given"
            )
        if terms:
            limit = limit or DEFAULT_KEYWORD_CLASS_LIMIT
        else:
            limit = limit or self.class_limit
            cached = self.cache.get_cached_classes() if self.cache else None
            if cached is not None:
                logger.debug(f"Class list served from cache ({len(cached)} classes)")
                return DiscoveryResult(kind="classes", classes=cached[:limit], from_cache=True)

        sparql = build_discovery_query("classes", limit=limit, class_keywords=terms or None)
        try:
            rows = self._select(sparql)
        except Exception as e:
            logger.warning(f"Class discovery failed: {e}")
            return DiscoveryResult(kind="classes", success=False, error=str(e), sparql=sparql)

        classes = [
            ClassInfo(type=str(row["type"]), count=extract_number(row.get("count")))
            for row in rows
            if row.get("type") is not None
        ]
        if not classes:
            hint = (
                f"No classes matching {', '.join(terms)}. Try discover_classes without keywords."
                if terms
                else "No classes found. The store may be empty or not expose the DKG index graph."
            )
            return DiscoveryResult(kind="classes", sparql=sparql, message=hint)

        if self.cache is not None and not terms:
            self.cache.cache_classes(classes)
        logger.info(f"Discovered {len(classes)} classes")
        return DiscoveryResult(kind="classes", classes=classes, sparql=sparql)

    # ── Predicates ───────────────────────────────────────────────────────

    def discover_predicates(
        self,
        class_uri: str | None = None,
        keyword: str | None = None,
        limit: int | None = None,
    ) -> DiscoveryResult:
        """Predicates of a class, or predicates whose URI contains a keyword."""
        if class_uri:
            return self.predicates_for_class(class_uri, limit)
        if keyword:
            return self.predicates_by_keyword(keyword, limit)
        return DiscoveryResult(
            kind="predicates",
            success=False,
            error="Either class_uri or keyword must be provided",
            message="Use discover_classes first to find available entity types.",
        )

    def predicates_for_class(self, class_uri: str, limit: int | None = None) -> DiscoveryResult:
        limit = limit or self.predicate_limit
        invalid = self._check_class_uri("predicates", class_uri)
        if invalid is not None:
            return invalid

        cached = self.cache.get_cached_predicates_for_class(class_uri) if self.cache else None
        if cached is not None:
            return DiscoveryResult(
                kind="predicates",
                class_uri=class_uri,
                predicates=cached[:limit],
                from_cache=True,
            )

        sparql = build_discovery_query("predicates_for_class", class_uri=class_uri, limit=limit)
        result = self._predicates(sparql, class_uri=class_uri)
        if result.predicates and self.cache is not None:
            self.cache.cache_predicates_for_class(class_uri, result.predicates)
        return result

    def predicates_by_keyword(self, keyword: str, limit: int | None = None) -> DiscoveryResult:
        limit = limit or self.predicate_limit
        term = sanitize_keyword(keyword)
        if not term:
            return DiscoveryResult(
                kind="predicates", success=False, keyword=keyword, error="Empty keyword"
            )

        cached = self.cache.get_cached_predicates_by_keyword(term) if self.cache else None
        if cached is not None:
            return DiscoveryResult(
                kind="predicates", keyword=term, predicates=cached[:limit], from_cache=True
            )

        sparql = build_discovery_query("predicates_by_keyword", keyword=term, limit=limit)
        result = self._predicates(sparql, keyword=term)
        if result.predicates and self.cache is not None:
            self.cache.cache_predicates_by_keyword(term, result.predicates)
        return result

    def _predicates(
        self, sparql: str, class_uri: str | None = None, keyword: str | None = None
    ) -> DiscoveryResult:
        try:
            rows = self._select(sparql)
        except Exception as e:
            logger.warning(f"Predicate discovery failed: {e}")
            return DiscoveryResult(
                kind="predicates",
                success=False,
                class_uri=class_uri,
                keyword=keyword,
                error=str(e),
                sparql=sparql,
            )

        predicates = [
            PredicateInfo(
                predicate=str(row["predicate"]),
                count=extract_number(row["count"]) if row.get("count") is not None else None,
            )
            for row in rows
            if row.get("predicate") is not None
        ]
        message = None
        if not predicates:
            context = f"class <{class_uri}>" if class_uri else f'keyword "{keyword}"'
            message = (
                f"No predicates found for {context}. "
                "Try discover_classes to see available entity types."
            )
        return DiscoveryResult(
            kind="predicates",
            class_uri=class_uri,
            keyword=keyword,
            predicates=predicates,
            sparql=sparql,
            message=message,
        )

    # ── Samples ──────────────────────────────────────────────────────────

    def sample_triples(self, class_uri: str, limit: int | None = None) -> DiscoveryResult:
        """Raw (subject, predicate, object) rows for instances of a class."""
        limit = limit or self.sample_limit
        invalid = self._check_class_uri("samples", class_uri)
        if invalid is not None:
            return invalid

        cached = self.cache.get_cached_samples_for_class(class_uri) if self.cache else None
        if cached is not None:
            return DiscoveryResult(
                kind="samples", class_uri=class_uri, samples=cached[:limit], from_cache=True
            )

        sparql = build_discovery_query("samples", class_uri=class_uri, limit=limit)
        try:
            rows = self._select(sparql)
        except Exception as e:
            logger.warning(f"Sampling {class_uri} failed: {e}")
            return DiscoveryResult(
                kind="samples", success=False, class_uri=class_uri, error=str(e), sparql=sparql
            )

        samples = [
            SampleTriple(
                subject=str(row["subject"]) if row.get("subject") is not None else None,
                predicate=str(row["predicate"]),
                object=str(row.get("object", "")),
            )
            for row in rows
            if row.get("predicate") is not None
        ]
        if not samples:
            return DiscoveryResult(
                kind="samples",
                class_uri=class_uri,
                sparql=sparql,
                message=(
                    f"No data found for class <{class_uri}>. "
                    "Use discover_classes to find available entity types."
                ),
            )
        if self.cache is not None:
            self.cache.cache_samples_for_class(class_uri, samples)
        return DiscoveryResult(kind="samples", class_uri=class_uri, samples=samples, sparql=sparql)

    # ── Extensions ───────────────────────────────────────────────────────

    def discover_extensions(self, class_uri: str, limit: int | None = None) -> DiscoveryResult:
        """Ontology-specific extension properties used on instances of a class."""
        invalid = self._check_class_uri("extensions", class_uri)
        if invalid is not None:
            return invalid

        ontology = detect_ontology(class_uri)
        sparql = build_discovery_query(
            f"extensions_{ontology}",
            class_uri=class_uri,
            limit=limit or self.predicate_limit,
        )
        try:
            rows = self._select(sparql)
        except Exception as e:
            logger.warning(f"Extension discovery for {class_uri} failed: {e}")
            return DiscoveryResult(
                kind="extensions",
                success=False,
                class_uri=class_uri,
                ontology=ontology,
                error=str(e),
                sparql=sparql,
            )

        message = None
        if not rows:
            message = f"No {ontology} extension properties found on instances of <{class_uri}>."
        return DiscoveryResult(
            kind="extensions",
            class_uri=class_uri,
            ontology=ontology,
            extensions=rows,
            sparql=sparql,
            message=message,
        )

    def _check_class_uri(self, kind: str, class_uri: str) -> DiscoveryResult | None:
        if is_absolute_iri(class_uri):
            return None
        return DiscoveryResult(
            kind=kind,
            success=False,
            class_uri=class_uri,
            error=f"Invalid class URI: {class_uri!r}",
        )
