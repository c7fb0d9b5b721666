"""Unit tests for quotegrid.cache."""

from __future__ import annotations

from quotegrid.cache import PageCache
from tests.fakes import make_quotes


class TestPageCache:
    def test_miss_returns_none(self) -> None:
        assert PageCache().get(1) is None

    def test_put_then_get(self) -> None:
        cache = PageCache()
        items = make_quotes(1, 3)
        cache.put(1, items)
        assert cache.get(1) == items
        assert 1 in cache
        assert len(cache) == 1

    def test_returned_list_is_a_copy(self) -> None:
        cache = PageCache()
        cache.put(1, make_quotes(1, 3))
        first = cache.get(1)
        assert first is not None
        first.clear()
        assert len(cache.get(1) or []) == 3

    def test_first_write_wins(self) -> None:
        cache = PageCache()
        original = make_quotes(1, 3)
        cache.put(1, original)
        returned = cache.put(1, make_quotes(1, 5))
        assert returned == original
        assert cache.get(1) == original

    def test_invalidate_single_page(self) -> None:
        cache = PageCache()
        cache.put(1, make_quotes(1, 1))
        cache.put(2, make_quotes(2, 1))
        cache.invalidate(1)
        assert cache.pages() == [2]

    def test_invalidate_all(self) -> None:
        cache = PageCache()
        cache.put(1, make_quotes(1, 1))
        cache.put(2, make_quotes(2, 1))
        cache.invalidate()
        assert len(cache) == 0


class TestBoundedCache:
    def test_unbounded_by_default(self) -> None:
        assert PageCache().bounded is False

    def test_evicts_least_recently_read(self) -> None:
        cache = PageCache(max_pages=2)
        cache.put(1, make_quotes(1, 1))
        cache.put(2, make_quotes(2, 1))
        cache.get(1)
        cache.put(3, make_quotes(3, 1))

        assert cache.bounded is True
        assert cache.pages() == [1, 3]

    def test_peek_does_not_touch_recency(self) -> None:
        cache = PageCache(max_pages=2)
        cache.put(1, make_quotes(1, 1))
        cache.put(2, make_quotes(2, 1))

        assert cache.peek(1) == make_quotes(1, 1)
        assert cache.peek(9) is None
        cache.put(3, make_quotes(3, 1))

        assert cache.pages() == [2, 3]
