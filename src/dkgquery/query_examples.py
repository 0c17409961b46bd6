"""
Curated example questions with their SPARQL, used as few-shot guidance.

Examples live in a YAML list; each entry has an ``id``, a ``category``, a
``priority`` (1-10, higher first on ties), ``keywords``, the ``question``
and the ``sparql`` that answers it.
"""

from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_EXAMPLES_PATH = os.path.join(os.path.dirname(__file__), "data", "query_examples.yaml")
DEFAULT_PRIORITY = 7

_WORD = re.compile(r"[a-z0-9]+")


class QueryExampleError(ValueError):
    """Raised when an examples file cannot be read or an entry is invalid."""

    pass


class QueryExample(BaseModel):
    """One curated question and the query that answers it."""

    id: str = Field(..., min_length=1)
    category: str = ""
    priority: int = Field(DEFAULT_PRIORITY, ge=1, le=10)
    keywords: List[str] = Field(default_factory=list)
    question: str
    sparql: str

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, v):
        if isinstance(v, str):
            return [k.strip() for k in v.split(",") if k.strip()]
        return v or []

    @property
    def terms(self) -> set:
        words = set()
        for keyword in self.keywords:
            words.update(_WORD.findall(keyword.lower()))
        return words


def load_query_examples(path: Optional[str] = None) -> List[QueryExample]:
    """
    Load examples from a YAML file.

    Args:
        path: YAML file; the packaged examples when omitted

    Returns:
        Examples in file order

    Raises:
        QueryExampleError: If the file is not valid YAML or an entry lacks
            an id, a question or a query
    """
    path = path or DEFAULT_EXAMPLES_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or []
    except (OSError, yaml.YAMLError) as e:
        raise QueryExampleError(f"Cannot load query examples from {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("examples", [])
    if not isinstance(raw, list):
        raise QueryExampleError(f"{path}: expected a list of examples")

    examples = []
    for position, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict) or not entry.get("id"):
            raise QueryExampleError(f"{path}: example #{position} has no id")
        try:
            examples.append(QueryExample.model_validate(entry))
        except ValidationError as e:
            raise QueryExampleError(f"{path}: example {entry['id']!r} is invalid: {e}") from e

    logger.debug(f"Loaded {len(examples)} query examples from {path}")
    return examples


def select_examples(
    question: str, examples: List[QueryExample], k: int = 3
) -> List[QueryExample]:
    """Examples whose keywords overlap the question most.

    Ties are broken by priority (higher first), then id.  Examples sharing
    no keyword with the question are never selected.
    """
    words = set(_WORD.findall(question.lower()))
    scored = []
    for example in examples:
        overlap = len(words & example.terms)
        if overlap:
            scored.append((-overlap, -example.priority, example.id, example))
    scored.sort(key=lambda item: item[:3])
    return [item[3] for item in scored[:k]]
