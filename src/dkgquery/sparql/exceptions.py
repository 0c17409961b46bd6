"""Exceptions raised by the SPARQL transformer."""

from __future__ import annotations


class SparqlError(Exception):
    """Base exception for SPARQL transformation errors."""

    pass


class SparqlParseError(SparqlError):
    """Raised when query text is not valid SPARQL of any form."""

    pass


class UnsupportedQueryError(SparqlError):
    """Raised when a parsed query is not a SELECT query."""

    pass


class SparqlSerializeError(SparqlError):
    """Raised when a structured query cannot be written back to text."""

    pass
