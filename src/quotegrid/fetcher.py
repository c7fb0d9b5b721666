"""Cache-backed page fetcher.

Every page read by the core goes through ``PageFetcher.fetch_page``. A cache
hit issues no external request. A miss takes the per-page lock (so concurrent
callers for one page share a single fetch), then a slot from the global
concurrency semaphore, then calls the source under a timeout.

A failed fetch is logged and returned as an empty page. It is not cached, so
the next caller retries it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import QuoteGridError
from quotegrid.models.pagination import FetchCounters

if TYPE_CHECKING:
    from quotegrid.models.pagination import PageMetadata
    from quotegrid.models.quote import Quote
    from quotegrid.protocols import PageCacheProtocol, SourceProtocol

log = structlog.get_logger()


class PageFetcher:
    def __init__(
        self,
        source: SourceProtocol,
        cache: PageCacheProtocol,
        *,
        timeout_seconds: float,
        max_concurrency: int,
    ) -> None:
        self._source = source
        self._cache = cache
        self._timeout = timeout_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._page_locks: dict[int, asyncio.Lock] = {}
        # Set by the orchestrator once the metadata walk finishes
        self.metadata: PageMetadata | None = None

        self._external_requests = 0
        self._items_fetched = 0
        self._failures = 0

    @property
    def counters(self) -> FetchCounters:
        return FetchCounters(
            external_requests=self._external_requests,
            items_fetched=self._items_fetched,
            failures=self._failures,
        )

    async def fetch_page(self, page_number: int) -> list[Quote]:
        """Return the items on ``page_number``, from cache when possible."""
        cached = self._cache.get(page_number)
        if cached is not None:
            log.debug("page_cache_hit", page=page_number, items=len(cached))
            return cached

        lock = self._page_locks.setdefault(page_number, asyncio.Lock())
        async with lock:
            # Another caller may have filled the page while we waited
            cached = self._cache.get(page_number)
            if cached is not None:
                return cached

            items = await self._fetch_external(page_number)
            if items is None:
                return []

            self._check_count(page_number, len(items))
            return self._cache.put(page_number, items)

    async def fetch_pages(self, page_numbers: list[int]) -> list[list[Quote]]:
        """Fetch several pages concurrently; results follow the input order."""
        return list(await asyncio.gather(*(self.fetch_page(n) for n in page_numbers)))

    async def _fetch_external(self, page_number: int) -> list[Quote] | None:
        async with self._semaphore:
            self._external_requests += 1
            log.info("page_fetch_started", page=page_number)
            try:
                items = await asyncio.wait_for(
                    self._source.list_items(page_number),
                    timeout=self._timeout,
                )
            except TimeoutError:
                self._failures += 1
                log.warning("page_fetch_failed", page=page_number, reason="timeout")
                return None
            except QuoteGridError as exc:
                self._failures += 1
                log.warning(
                    "page_fetch_failed",
                    page=page_number,
                    reason=exc.code,
                    message=exc.message,
                )
                return None
            except Exception:
                self._failures += 1
                log.warning("page_fetch_failed", page=page_number, reason="error", exc_info=True)
                return None

        self._items_fetched += len(items)
        log.info("page_fetch_complete", page=page_number, items=len(items))
        return items

    def _check_count(self, page_number: int, count: int) -> None:
        """Warn when a page yields fewer items than the metadata promised."""
        if count == 0:
            log.warning("page_empty", page=page_number)
            return

        metadata = self.metadata
        if metadata is None or metadata.fallback:
            return
        is_last_page = page_number >= metadata.total_pages
        if count < metadata.min_items_per_page and not is_last_page:
            log.warning(
                "page_undershoot",
                page=page_number,
                items=count,
                expected_min=metadata.min_items_per_page,
            )
