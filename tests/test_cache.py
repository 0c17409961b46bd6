"""Tests for the discovery cache."""

import threading

from dkgquery.cache import DiscoveryCache, get_default_cache
from dkgquery.models import ClassInfo, PredicateInfo, SampleTriple

PRODUCT = "http://schema.org/Product"
NAME = PredicateInfo(predicate="http://schema.org/name", count=500)


class TestDiscoveryCache:
    def test_miss_returns_none(self, cache):
        assert cache.get_cached_classes() is None
        assert cache.get_cached_predicates_for_class(PRODUCT) is None
        assert cache.get_cached_predicates_by_keyword("name") is None
        assert cache.get_cached_samples_for_class(PRODUCT) is None

    def test_classes(self, cache):
        classes = [ClassInfo(type=PRODUCT, count=500)]
        cache.cache_classes(classes)
        assert cache.get_cached_classes() == classes

    def test_cached_empty_class_list_is_a_miss(self, cache):
        cache.cache_classes([])
        assert cache.get_cached_classes() is None

    def test_cached_empty_predicate_list_is_a_hit(self, cache):
        cache.cache_predicates_for_class(PRODUCT, [])
        assert cache.get_cached_predicates_for_class(PRODUCT) == []

    def test_caching_twice_is_idempotent(self, cache):
        cache.cache_predicates_for_class(PRODUCT, [NAME])
        cache.cache_predicates_for_class(PRODUCT, [NAME])
        assert cache.get_cached_predicates_for_class(PRODUCT) == [NAME]
        assert cache.stats()["predicates_by_class"] == 1

    def test_keywords_are_case_insensitive(self, cache):
        cache.cache_predicates_by_keyword("Name", [NAME])
        assert cache.get_cached_predicates_by_keyword("NAME") == [NAME]

    def test_samples(self, cache):
        sample = SampleTriple(subject="urn:p1", predicate=NAME.predicate, object="Phone")
        cache.cache_samples_for_class(PRODUCT, [sample])
        assert cache.get_cached_samples_for_class(PRODUCT) == [sample]

    def test_returned_lists_are_copies(self, cache):
        cache.cache_predicates_for_class(PRODUCT, [NAME])
        cache.get_cached_predicates_for_class(PRODUCT).clear()
        assert cache.get_cached_predicates_for_class(PRODUCT) == [NAME]

    def test_clear(self, cache):
        cache.cache_classes([ClassInfo(type=PRODUCT, count=1)])
        cache.cache_predicates_by_keyword("name", [NAME])
        assert cache.last_updated is not None

        cache.clear()

        assert cache.get_cached_classes() is None
        assert cache.get_cached_predicates_by_keyword("name") is None
        assert cache.last_updated is None

    def test_stats(self, cache):
        cache.cache_classes([ClassInfo(type=PRODUCT, count=1)])
        cache.cache_predicates_for_class(PRODUCT, [NAME])
        stats = cache.stats()
        assert stats["classes"] == 1
        assert stats["predicates_by_class"] == 1
        assert stats["predicates_by_keyword"] == 0
        assert stats["last_updated"] is not None
        assert "classes=1" in repr(cache)

    def test_concurrent_writers(self, cache):
        def write(n):
            for i in range(50):
                cache.cache_predicates_for_class(f"urn:class:{n}:{i}", [NAME])

        threads = [threading.Thread(target=write, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.stats()["predicates_by_class"] == 200


def test_default_cache_is_shared():
    assert get_default_cache() is get_default_cache()
    assert isinstance(get_default_cache(), DiscoveryCache)
