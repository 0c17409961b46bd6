"""
Utility functions for URIs, keywords and counts.

Shared by the discovery library, the prompt renderer and the CLI.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

STANDARD_PREFIXES: Dict[str, str] = {
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "owl": "http://www.w3.org/2002/07/owl#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
    "skos": "http://www.w3.org/2004/02/skos/core#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "foaf": "http://xmlns.com/foaf/0.1/",
    "schema": "http://schema.org/",
    "prov": "http://www.w3.org/ns/prov#",
    "dkg": "https://ontology.origintrail.io/dkg/1.0#",
}

_DIGITS = re.compile(r"\d+")
_KEYWORD_STRIP = re.compile(r"[\"'\\]")
_ABSOLUTE_IRI = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:[^\s<>\"{}|^`\\]*$")


def extract_number(value: Any) -> int:
    """Read a count from a result cell.

    Stores return counts as ints, numeric strings or typed-literal text
    such as ``"500"^^xsd:integer``; the first run of digits wins.

    Examples::

        >>> extract_number(500)
        500
        >>> extract_number('"42"^^<http://www.w3.org/2001/XMLSchema#integer>')
        42
        >>> extract_number(None)
        0
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if value is None:
        return 0
    match = _DIGITS.search(str(value))
    return int(match.group()) if match else 0


def sanitize_keyword(keyword: str) -> str:
    """Lowercase a search keyword and strip quote and backslash characters."""
    return _KEYWORD_STRIP.sub("", keyword).strip().lower()


def is_absolute_iri(value: str) -> bool:
    """Check that *value* looks like an absolute IRI usable in a query."""
    return bool(value) and bool(_ABSOLUTE_IRI.match(value))


def get_local_name(uri: str) -> str:
    """Extract the local name from a URI.

    Examples::

        >>> get_local_name("http://example.org/foo#Bar")
        'Bar'
        >>> get_local_name("http://schema.org/Product")
        'Product'
    """
    if "#" in uri:
        return uri.split("#")[-1]
    return uri.rstrip("/").rsplit("/", 1)[-1] if "/" in uri else uri


def compact_uri(uri: str, prefixes: Optional[Dict[str, str]] = None) -> str:
    """Compact a URI to ``prefix:localName`` when a namespace matches."""
    for pfx, ns in (prefixes or STANDARD_PREFIXES).items():
        if uri.startswith(ns) and len(uri) > len(ns):
            return f"{pfx}:{uri[len(ns):]}"
    return uri


def expand_curie(curie: str, prefixes: Optional[Dict[str, str]] = None) -> str:
    """Expand a CURIE (``schema:Product``) to a full URI.

    Full URIs and unknown prefixes are returned unchanged; angle brackets
    around a full URI are removed.
    """
    curie = curie.strip()
    if curie.startswith("<") and curie.endswith(">"):
        return curie[1:-1]
    if ":" not in curie or "://" in curie:
        return curie
    pfx, local = curie.split(":", 1)
    ns = (prefixes or STANDARD_PREFIXES).get(pfx)
    return f"{ns}{local}" if ns else curie


def shorten_for_display(uri: str, prefixes: Optional[Dict[str, str]] = None) -> str:
    """Shorten a URI for display, CURIE first, then local name."""
    compact = compact_uri(uri, prefixes)
    if compact != uri:
        return compact
    return get_local_name(uri)
