"""Range resolution: logical (offset, limit) → page fetches → exact slice.

Logical positions assume every page holds ``per_page`` items, where
``per_page`` is the minimum count seen by the metadata walk. Pages that hold
more simply widen the candidate window; pages that hold fewer (or fail) leave
it short, and the adaptive extension pulls further pages until the slice is
satisfiable or the source runs out. A short result is a valid answer, not an
error.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import structlog

from quotegrid.models.pagination import RangeRequest

if TYPE_CHECKING:
    from collections.abc import Callable

    from quotegrid.config import PaginationSettings
    from quotegrid.fetcher import PageFetcher
    from quotegrid.models.pagination import PageMetadata
    from quotegrid.models.quote import Quote

log = structlog.get_logger()


def page_span(offset: int, limit: int, per_page: int) -> tuple[int, int]:
    """Return the 1-based (start_page, end_page) covering a logical range.

    >>> page_span(15, 10, 7)
    (3, 4)
    """
    if per_page < 1:
        raise ValueError("per_page must be >= 1")
    start_page = offset // per_page + 1
    end_page = math.ceil((offset + limit) / per_page)
    return start_page, end_page


class RangeResolver:
    def __init__(
        self,
        fetcher: PageFetcher,
        metadata: Callable[[], PageMetadata | None],
        settings: PaginationSettings,
    ) -> None:
        self._fetcher = fetcher
        self._metadata = metadata
        self._settings = settings

    def per_page(self) -> int:
        metadata = self._metadata()
        if metadata is None or metadata.min_items_per_page < 1:
            return self._settings.default_per_page
        return metadata.min_items_per_page

    def total_pages(self) -> int:
        metadata = self._metadata()
        if metadata is None:
            return self._settings.default_total_pages
        return metadata.total_pages

    async def resolve_range(self, offset: int, limit: int) -> list[Quote]:
        """Return up to ``limit`` quotes starting at logical position ``offset``."""
        request = RangeRequest(offset=offset, limit=limit)
        offset, limit = request.offset, request.limit

        per_page = self.per_page()
        total_pages = self.total_pages()
        start_page, end_page = page_span(offset, limit, per_page)
        last_page = min(end_page, total_pages)

        log.debug(
            "range_plan",
            offset=offset,
            limit=limit,
            per_page=per_page,
            start_page=start_page,
            end_page=end_page,
            total_pages=total_pages,
        )

        pages = list(range(start_page, last_page + 1))
        window: list[Quote] = []
        for items in await self._fetcher.fetch_pages(pages):
            window.extend(items)

        local_start = offset % per_page
        needed = local_start + limit

        next_page = end_page + 1
        while len(window) < needed and next_page <= total_pages:
            log.info(
                "range_extension",
                page=next_page,
                window=len(window),
                needed=needed,
            )
            window.extend(await self._fetcher.fetch_page(next_page))
            next_page += 1

        result = window[local_start:needed]
        if len(result) < limit:
            log.warning(
                "range_short",
                offset=offset,
                limit=limit,
                returned=len(result),
                min_items_per_page=per_page,
            )
        return result
