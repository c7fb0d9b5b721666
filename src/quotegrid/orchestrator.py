"""Session facade over the fetch core.

One ``QuoteOrchestrator`` lives for the whole server lifetime. It owns the
page cache, the fetcher, the metadata (computed once, lazily), the active
client selections and any enrichment links already looked up. Enrich
lookups share one semaphore sized like the fetcher's. Tool handlers
talk to this class only.
"""

from __future__ import annotations

import asyncio
import secrets
from typing import TYPE_CHECKING
from urllib.parse import quote as url_quote

import structlog

from quotegrid.cache import PageCache
from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.fetcher import PageFetcher
from quotegrid.metadata import MetadataEstimator
from quotegrid.models.pagination import AllQuotesResult, RangeResult
from quotegrid.models.session import SessionFlags, SessionStats
from quotegrid.protocols import EnrichingSourceProtocol
from quotegrid.resolver import RangeResolver
from quotegrid.schedulers import SelectionLoad, SelectionMode, plan_selection
from quotegrid.strategy import StrategySelector

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable
    from typing import Any

    from quotegrid.config import Settings
    from quotegrid.models.pagination import PageMetadata
    from quotegrid.models.quote import Quote, QuoteCell
    from quotegrid.models.session import SelectionStatus
    from quotegrid.protocols import SourceProtocol

log = structlog.get_logger()

GOODREADS_SEARCH_URL = "https://www.goodreads.com/quotes/search?q="


def goodreads_search_url(quote: Quote) -> str:
    """Deterministic fallback link: a Goodreads search for the quote."""
    snippet = quote.text[:50].strip()
    return GOODREADS_SEARCH_URL + url_quote(f"{snippet} {quote.author}", safe="!~*'()")


class QuoteOrchestrator:
    def __init__(
        self,
        source: SourceProtocol,
        settings: Settings,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._source = source
        self._settings = settings
        self._sleep = sleep

        self.metadata: PageMetadata | None = None
        self._metadata_lock = asyncio.Lock()

        self.cache = PageCache(settings.cache.max_pages)
        self.fetcher = PageFetcher(
            source,
            self.cache,
            timeout_seconds=settings.source.timeout_seconds,
            max_concurrency=settings.source.max_concurrency,
        )
        self.estimator = MetadataEstimator(
            source,
            settings.pagination,
            timeout_seconds=settings.source.timeout_seconds,
        )
        self.resolver = RangeResolver(self.fetcher, lambda: self.metadata, settings.pagination)
        self.selector = StrategySelector(
            self.fetcher,
            self.resolver,
            small_subset_max=settings.strategy.small_subset_max,
            rng=rng,
        )

        self._selections: dict[str, SelectionLoad] = {}
        self._links: dict[str, str] = {}
        # Bounds concurrent enrich lookups, like the fetcher bounds page fetches
        self._enrich_semaphore = asyncio.Semaphore(settings.source.max_concurrency)

    @property
    def initialized(self) -> bool:
        return self.metadata is not None

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def ensure_metadata(self) -> PageMetadata:
        """Run the metadata walk once; concurrent callers share it."""
        if self.metadata is not None:
            return self.metadata
        async with self._metadata_lock:
            if self.metadata is None:
                metadata = await self.estimator.compute_metadata()
                self.metadata = metadata
                self.fetcher.metadata = metadata
        return self.metadata

    async def initialize(self) -> None:
        metadata = await self.ensure_metadata()
        log.info(
            "orchestrator_initialized",
            total_pages=metadata.total_pages,
            estimated_total=metadata.estimated_total,
            fallback=metadata.fallback,
        )

    # ------------------------------------------------------------------
    # Item access
    # ------------------------------------------------------------------

    async def get_random_quotes(self, count: int) -> list[Quote]:
        await self.ensure_metadata()
        return await self.selector.get_items(count)

    async def get_range(self, offset: int, limit: int) -> RangeResult:
        metadata = await self.ensure_metadata()
        items = await self.resolver.resolve_range(offset, limit)
        total = metadata.estimated_total
        return RangeResult(items=items, total=total, has_more=offset + limit < total)

    def get_stats(self) -> SessionStats:
        counters = self.fetcher.counters
        return SessionStats(
            cached_pages=len(self.cache),
            total_fetched=counters.items_fetched,
            external_requests=counters.external_requests,
            failed_fetches=counters.failures,
            active_selections=len(self._selections),
            metadata=self.metadata,
            session_flags=SessionFlags(
                initialized=self.initialized,
                metadata_fallback=self.metadata is not None and self.metadata.fallback,
                cache_bounded=self.cache.bounded,
            ),
        )

    # ------------------------------------------------------------------
    # Client selections
    # ------------------------------------------------------------------

    async def start_selection(self, count: int) -> SelectionStatus:
        """Fill the first tier of a new selection and schedule the rest."""
        await self.ensure_metadata()
        scheduling = self._settings.scheduling
        plan = plan_selection(
            count,
            initial_batch_size=scheduling.initial_batch_size,
            batch_size=scheduling.batch_size,
            staggered_max_remaining=scheduling.staggered_max_remaining,
            stagger_delay_seconds=scheduling.stagger_delay_seconds,
        )
        selection_id = secrets.token_hex(6)
        selection = SelectionLoad(
            selection_id, plan, self._load_cells, scheduling, sleep=self._sleep
        )
        self._selections[selection_id] = selection
        log.info(
            "selection_started",
            selection_id=selection_id,
            total=count,
            mode=plan.mode.value,
            initial=plan.initial_size,
        )

        if plan.mode is SelectionMode.IMMEDIATE:
            selection.fill(0, await self.selector.get_cells(count))
        else:
            await selection.load_batch(0, plan.initial_size)
            selection.start_background()
        return selection.status()

    def scroll_selection(self, selection_id: str) -> SelectionStatus:
        selection = self._get_selection(selection_id)
        if not selection.signal_scroll():
            log.debug("scroll_ignored", selection_id=selection_id, mode=selection.plan.mode.value)
        return selection.status()

    def get_selection(self, selection_id: str) -> SelectionStatus:
        return self._get_selection(selection_id).status()

    def release_selection(self, selection_id: str) -> None:
        """Forget a selection; its in-flight batches finish harmlessly."""
        self._get_selection(selection_id)
        del self._selections[selection_id]
        log.info("selection_released", selection_id=selection_id)

    def _get_selection(self, selection_id: str) -> SelectionLoad:
        selection = self._selections.get(selection_id)
        if selection is None:
            raise QuoteGridError(
                code=ErrorCode.SELECTION_NOT_FOUND,
                message=f"No active selection with id '{selection_id}'",
                suggestion="Call fill_selection to start a new selection.",
                recoverable=False,
            )
        return selection

    async def _load_cells(self, offset: int, limit: int) -> list[QuoteCell]:
        return await self.selector.get_cells(
            limit, bulk=lambda: self.resolver.resolve_range(offset, limit)
        )

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def find_quote(self, quote_id: str) -> Quote:
        for page_number in self.cache.pages():
            # peek, so id lookups leave LRU recency alone
            for quote in self.cache.peek(page_number) or []:
                if quote.id == quote_id:
                    return quote
        raise QuoteGridError(
            code=ErrorCode.QUOTE_NOT_FOUND,
            message=f"Quote '{quote_id}' is not in the session cache",
            suggestion="Quote ids come from get_random_quotes, get_quote_range or a selection.",
            recoverable=False,
        )

    async def quote_link(self, quote_id: str) -> tuple[str, bool]:
        """Goodreads link for a cached quote, and whether it is the search fallback."""
        return await self._resolve_link(self.find_quote(quote_id))

    async def get_all_quotes(self, *, enrich: bool = False) -> AllQuotesResult:
        """Every quote on every known page, in page order.

        With ``enrich`` each quote carries a Goodreads link. Lookups share the
        enrichment semaphore, and a failed lookup gets the search URL.
        """
        metadata = await self.ensure_metadata()
        pages = await self.fetcher.fetch_pages(list(range(1, metadata.total_pages + 1)))
        quotes = [quote for items in pages for quote in items]
        log.info("all_quotes_collected", pages=len(pages), quotes=len(quotes), enrich=enrich)
        if not enrich:
            return AllQuotesResult(items=quotes, total_pages=metadata.total_pages)

        links = await asyncio.gather(*(self._resolve_link(quote) for quote in quotes))
        enriched = [
            quote.model_copy(update={"goodreads_url": url})
            for quote, (url, _) in zip(quotes, links, strict=True)
        ]
        fallbacks = sum(1 for _, fallback in links if fallback)
        log.info("all_quotes_enriched", quotes=len(enriched), fallback_links=fallbacks)
        return AllQuotesResult(
            items=enriched, total_pages=metadata.total_pages, fallback_links=fallbacks
        )

    async def _resolve_link(self, quote: Quote) -> tuple[str, bool]:
        if quote.goodreads_url:
            return quote.goodreads_url, False
        if quote.id in self._links:
            return self._links[quote.id], False

        url: str | None = None
        if isinstance(self._source, EnrichingSourceProtocol):
            async with self._enrich_semaphore:
                try:
                    url = await asyncio.wait_for(
                        self._source.enrich(quote),
                        timeout=self._settings.source.timeout_seconds,
                    )
                except TimeoutError:
                    log.warning("enrich_failed", quote_id=quote.id, reason="timeout")
                except QuoteGridError as exc:
                    log.warning("enrich_failed", quote_id=quote.id, reason=exc.code)
                except Exception:
                    log.warning("enrich_failed", quote_id=quote.id, reason="error", exc_info=True)

        if url:
            self._links[quote.id] = url
            return url, False
        return goodreads_search_url(quote), True

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Drop every selection and wait for their background work to settle."""
        selections = list(self._selections.values())
        self._selections.clear()
        for selection in selections:
            selection.cancel()
        await asyncio.gather(*(s.drain() for s in selections), return_exceptions=True)
        log.info("orchestrator_closed", selections_dropped=len(selections))
