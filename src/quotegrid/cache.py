"""In-memory page cache for one session.

Pages are keyed by page number and written at most once: ``put`` on a page
that is already cached keeps the first entry and returns it, so racing
fetches of the same page are harmless. Entries are stored as tuples of frozen
quotes and handed out as fresh lists, so callers cannot mutate them.

With ``max_pages`` set, the least recently read page is evicted when the
bound is exceeded. Without it the cache is bounded by the source's page count.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from quotegrid.models.quote import Quote

log = structlog.get_logger()


class PageCache:
    """Implements PageCacheProtocol."""

    def __init__(self, max_pages: int | None = None) -> None:
        self._max_pages = max_pages
        self._pages: OrderedDict[int, tuple[Quote, ...]] = OrderedDict()

    @property
    def bounded(self) -> bool:
        return self._max_pages is not None

    def get(self, page_number: int) -> list[Quote] | None:
        """Return a copy of the cached page, or None on a miss."""
        entry = self._pages.get(page_number)
        if entry is None:
            return None
        self._pages.move_to_end(page_number)
        return list(entry)

    def peek(self, page_number: int) -> list[Quote] | None:
        """Like ``get`` but leaves LRU order untouched."""
        entry = self._pages.get(page_number)
        return None if entry is None else list(entry)

    def put(self, page_number: int, items: list[Quote]) -> list[Quote]:
        """Store a page unless it is already cached. Returns the cached entry."""
        existing = self._pages.get(page_number)
        if existing is not None:
            log.debug("page_cache_write_skipped", page=page_number, reason="already_cached")
            return list(existing)

        self._pages[page_number] = tuple(items)
        if self._max_pages is not None:
            while len(self._pages) > self._max_pages:
                evicted, _ = self._pages.popitem(last=False)
                log.debug("page_cache_evicted", page=evicted)
        return list(items)

    def invalidate(self, page_number: int | None = None) -> None:
        """Drop one page, or every page when ``page_number`` is None."""
        if page_number is None:
            self._pages.clear()
            log.info("page_cache_cleared")
            return
        self._pages.pop(page_number, None)

    def pages(self) -> list[int]:
        return sorted(self._pages)

    def __contains__(self, page_number: object) -> bool:
        return page_number in self._pages

    def __len__(self) -> int:
        return len(self._pages)
