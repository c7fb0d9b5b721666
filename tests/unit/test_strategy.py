"""Unit tests for quotegrid.strategy."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from quotegrid.cache import PageCache
from quotegrid.config import PaginationSettings
from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.fetcher import PageFetcher
from quotegrid.models.pagination import PageMetadata
from quotegrid.models.quote import Placeholder, Quote
from quotegrid.resolver import RangeResolver
from quotegrid.strategy import StrategySelector
from tests.fakes import FakeSource, make_quotes


def _selector(source: FakeSource, total_pages: int, min_items: int, seed: int = 7) -> StrategySelector:
    metadata = PageMetadata.build(
        total_pages=total_pages, min_items_per_page=min_items, avg_items_per_page=min_items
    )
    fetcher = PageFetcher(source, PageCache(), timeout_seconds=5, max_concurrency=10)
    fetcher.metadata = metadata
    resolver = RangeResolver(fetcher, lambda: metadata, PaginationSettings())
    return StrategySelector(fetcher, resolver, small_subset_max=50, rng=random.Random(seed))


def _failure() -> QuoteGridError:
    return QuoteGridError(
        code=ErrorCode.PAGE_FETCH_FAILED,
        message="bulk failed",
        suggestion="retry",
        recoverable=True,
    )


class TestSmallSubset:
    async def test_returns_count_distinct_quotes(self) -> None:
        selector = _selector(FakeSource([10] * 10), 10, 10)

        quotes = await selector.get_items(5)

        assert len(quotes) == 5
        assert len({q.id for q in quotes}) == 5

    async def test_returns_what_exists_when_source_is_small(self) -> None:
        selector = _selector(FakeSource([3]), 1, 3)

        quotes = await selector.get_items(5)

        assert len(quotes) == 3

    async def test_single_quote(self) -> None:
        source = FakeSource([10] * 10)
        selector = _selector(source, 10, 10)

        quotes = await selector.get_items(1)

        assert len(quotes) == 1
        assert len(source.list_calls) == 1

    async def test_fetches_at_most_half_the_pages(self) -> None:
        source = FakeSource([10] * 10)
        selector = _selector(source, 10, 10)

        await selector.get_items(50)

        assert len(set(source.list_calls)) == 5

    async def test_tops_up_when_chosen_pages_fail(self) -> None:
        source = FakeSource([10] * 4, fail_pages={1, 2})
        selector = _selector(source, 4, 10)

        quotes = await selector.get_items(15)

        assert len(quotes) == 15
        assert len({q.id for q in quotes}) == 15
        assert {q.page_number for q in quotes} == {3, 4}

    async def test_seeded_rng_is_deterministic(self) -> None:
        first = await _selector(FakeSource([10] * 10), 10, 10, seed=3).get_items(8)
        second = await _selector(FakeSource([10] * 10), 10, 10, seed=3).get_items(8)

        assert [q.id for q in first] == [q.id for q in second]


class TestPaginatedStrategy:
    async def test_large_count_reads_in_source_order(self) -> None:
        source = FakeSource([10] * 10)
        selector = _selector(source, 10, 10)

        quotes = await selector.get_items(60)

        assert [q.text for q in quotes] == [
            q.text for n in range(1, 7) for q in source.pages[n]
        ]

    async def test_rejects_non_positive_count(self) -> None:
        selector = _selector(FakeSource([10]), 1, 10)

        with pytest.raises(ValueError):
            await selector.get_items(0)


class TestCells:
    async def test_bulk_result_becomes_cells(self) -> None:
        selector = _selector(FakeSource([10] * 10), 10, 10)

        cells = await selector.get_cells(5)

        assert len(cells) == 5
        assert all(isinstance(cell, Quote) for cell in cells)

    async def test_short_bulk_is_padded_with_placeholders(self) -> None:
        selector = _selector(FakeSource([10]), 1, 10)
        bulk = AsyncMock(return_value=make_quotes(1, 3))

        cells = await selector.get_cells(5, bulk=bulk)

        assert [cell.kind for cell in cells] == ["quote"] * 3 + ["placeholder"] * 2
        assert cells[3] == Placeholder.unavailable()

    async def test_bulk_failure_degrades_to_single_fetches(self) -> None:
        selector = _selector(FakeSource([10] * 10), 10, 10)
        bulk = AsyncMock(side_effect=_failure())

        cells = await selector.get_cells(4, bulk=bulk)

        assert len(cells) == 4
        assert all(isinstance(cell, Quote) for cell in cells)

    async def test_empty_source_yields_unavailable_placeholders(self) -> None:
        selector = _selector(FakeSource([10, 10], fail_pages={1, 2}), 2, 10)

        cells = await selector.get_cells(3)

        assert cells == [Placeholder.unavailable()] * 3

    async def test_failing_single_fetches_yield_error_placeholders(self) -> None:
        selector = _selector(FakeSource([10]), 1, 10)
        selector.get_items = AsyncMock(side_effect=_failure())  # type: ignore[method-assign]

        cells = await selector.get_cells(2)

        assert cells == [Placeholder.failed(), Placeholder.failed()]
        assert cells[0].message == "Error loading quote"
