"""In-memory schema discovery cache."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any

from .models import ClassInfo, PredicateInfo, SampleTriple

logger = logging.getLogger(__name__)


class DiscoveryCache:
    """Memoizes discovery results for the lifetime of a process.

    Entries are never evicted; only :meth:`clear` empties the cache.  Every
    getter returns ``None`` on a miss, which callers treat as "go fetch".
    One instance is shared by the discovery library and the query loop of
    a process; a lock serializes access so concurrent questions can use it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._classes: list[ClassInfo] = []
        self._predicates_by_class: dict[str, list[PredicateInfo]] = {}
        self._predicates_by_keyword: dict[str, list[PredicateInfo]] = {}
        self._samples_by_class: dict[str, list[SampleTriple]] = {}
        self._last_updated: datetime | None = None

    def _touch(self) -> None:
        self._last_updated = datetime.now(timezone.utc)

    # Classes

    def cache_classes(self, classes: list[ClassInfo]) -> None:
        with self._lock:
            self._classes = list(classes)
            self._touch()

    def get_cached_classes(self) -> list[ClassInfo] | None:
        with self._lock:
            return list(self._classes) if self._classes else None

    # Predicates

    def cache_predicates_for_class(
        self, class_uri: str, predicates: list[PredicateInfo]
    ) -> None:
        with self._lock:
            self._predicates_by_class[class_uri] = list(predicates)
            self._touch()

    def get_cached_predicates_for_class(self, class_uri: str) -> list[PredicateInfo] | None:
        with self._lock:
            cached = self._predicates_by_class.get(class_uri)
            return list(cached) if cached is not None else None

    def cache_predicates_by_keyword(
        self, keyword: str, predicates: list[PredicateInfo]
    ) -> None:
        with self._lock:
            self._predicates_by_keyword[keyword.lower()] = list(predicates)
            self._touch()

    def get_cached_predicates_by_keyword(self, keyword: str) -> list[PredicateInfo] | None:
        with self._lock:
            cached = self._predicates_by_keyword.get(keyword.lower())
            return list(cached) if cached is not None else None

    # Samples

    def cache_samples_for_class(self, class_uri: str, samples: list[SampleTriple]) -> None:
        with self._lock:
            self._samples_by_class[class_uri] = list(samples)
            self._touch()

    def get_cached_samples_for_class(self, class_uri: str) -> list[SampleTriple] | None:
        with self._lock:
            cached = self._samples_by_class.get(class_uri)
            return list(cached) if cached is not None else None

    # Housekeeping

    @property
    def last_updated(self) -> datetime | None:
        return self._last_updated

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._classes = []
            self._predicates_by_class.clear()
            self._predicates_by_keyword.clear()
            self._samples_by_class.clear()
            self._last_updated = None
        logger.debug("Discovery cache cleared")

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "classes": len(self._classes),
                "predicates_by_class": len(self._predicates_by_class),
                "predicates_by_keyword": len(self._predicates_by_keyword),
                "samples_by_class": len(self._samples_by_class),
                "last_updated": (
                    self._last_updated.isoformat() if self._last_updated else None
                ),
            }

    def __repr__(self) -> str:
        stats = self.stats()
        return (
            f"DiscoveryCache(classes={stats['classes']}, "
            f"predicates_by_class={stats['predicates_by_class']})"
        )


_default_cache: DiscoveryCache | None = None
_default_lock = threading.Lock()


def get_default_cache() -> DiscoveryCache:
    """Process-wide cache, created on first use."""
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            _default_cache = DiscoveryCache()
        return _default_cache
