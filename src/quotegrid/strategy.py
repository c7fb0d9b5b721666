"""Fetch strategy selection by request size.

- ``count <= small_subset_max``: sample a few distinct random pages, shuffle
  their combined quotes and take ``count``. A single quote is this strategy
  with ``count == 1``.
- larger counts: delegate to the range resolver from offset 0.

``get_cells`` is the degraded path used for client selections: if the bulk
call fails or comes back empty, it falls back to one single-quote fetch per
position and marks whatever it cannot fill with placeholders.
"""

from __future__ import annotations

import asyncio
import math
import random
from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import QuoteGridError
from quotegrid.models.quote import Placeholder, Quote

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from quotegrid.fetcher import PageFetcher
    from quotegrid.models.quote import QuoteCell
    from quotegrid.resolver import RangeResolver

log = structlog.get_logger()


class StrategySelector:
    def __init__(
        self,
        fetcher: PageFetcher,
        resolver: RangeResolver,
        *,
        small_subset_max: int = 50,
        rng: random.Random | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._resolver = resolver
        self._small_subset_max = small_subset_max
        self._rng = rng or random.Random()

    async def get_items(self, count: int) -> list[Quote]:
        if count < 1:
            raise ValueError("count must be >= 1")
        if count <= self._small_subset_max:
            log.info("strategy_selected", strategy="small_subset", count=count)
            return await self.fetch_small_subset(count)
        log.info("strategy_selected", strategy="paginated", count=count)
        return await self._resolver.resolve_range(0, count)

    async def fetch_small_subset(self, count: int) -> list[Quote]:
        """Random sample of ``count`` quotes drawn from a few random pages."""
        per_page = self._resolver.per_page()
        total_pages = self._resolver.total_pages()

        pages_needed = min(math.ceil(count / per_page), math.ceil(total_pages / 2))
        pages_needed = max(1, pages_needed)

        order = list(range(1, total_pages + 1))
        self._rng.shuffle(order)
        chosen, spare = order[:pages_needed], order[pages_needed:]
        log.debug("small_subset_pages", pages=chosen)

        quotes: list[Quote] = []
        for items in await self._fetcher.fetch_pages(chosen):
            quotes.extend(items)

        # Chosen pages came up short (failed or sparse): top up from the rest
        while len(quotes) < count and spare:
            page = spare.pop(0)
            log.info("small_subset_top_up", page=page, have=len(quotes), want=count)
            quotes.extend(await self._fetcher.fetch_page(page))

        self._rng.shuffle(quotes)
        return quotes[:count]

    async def get_cells(
        self,
        count: int,
        bulk: Callable[[], Awaitable[list[Quote]]] | None = None,
    ) -> list[QuoteCell]:
        """Fill ``count`` cells, degrading to single fetches if the bulk call fails.

        ``bulk`` defaults to ``get_items(count)``; selection batches pass a
        range fetch at their own offset instead.
        """
        fetch_bulk = bulk or (lambda: self.get_items(count))
        try:
            quotes = await fetch_bulk()
        except (QuoteGridError, ValueError, TimeoutError) as exc:
            log.warning("bulk_fetch_failed", count=count, error=str(exc))
            quotes = []

        if not quotes:
            log.warning("bulk_fetch_degraded", count=count)
            return await self._fill_individually(count)

        cells: list[QuoteCell] = list(quotes[:count])
        if len(cells) < count:
            log.warning("cells_unfilled", requested=count, filled=len(cells))
            cells.extend(Placeholder.unavailable() for _ in range(count - len(cells)))
        return cells

    async def _fill_individually(self, count: int) -> list[QuoteCell]:
        results = await asyncio.gather(
            *(self.get_items(1) for _ in range(count)),
            return_exceptions=True,
        )
        cells: list[QuoteCell] = []
        for result in results:
            if isinstance(result, BaseException):
                log.warning("single_fetch_failed", error=str(result))
                cells.append(Placeholder.failed())
            elif result:
                cells.append(result[0])
            else:
                cells.append(Placeholder.unavailable())
        return cells
