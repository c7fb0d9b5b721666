"""Metadata estimator: one bounded walk over the source's pages.

The walk records how many items each page holds. Downstream offset
arithmetic divides by the *minimum* observed count, never the first page's
count: overestimating a page's guaranteed size makes the range resolver
under-fetch. The average is kept for reporting only.

Metadata is advisory. Failures never propagate: an error before any page was
counted yields the conservative fallback, an error later ends the walk.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from quotegrid.models.pagination import PageMetadata

if TYPE_CHECKING:
    from quotegrid.config import PaginationSettings
    from quotegrid.protocols import SourceProtocol

log = structlog.get_logger()


def fallback_metadata(settings: PaginationSettings) -> PageMetadata:
    per_page = settings.default_per_page
    return PageMetadata.build(
        total_pages=settings.default_total_pages,
        min_items_per_page=per_page,
        avg_items_per_page=per_page,
        page_counts=(per_page,),
        fallback=True,
    )


class MetadataEstimator:
    def __init__(
        self,
        source: SourceProtocol,
        settings: PaginationSettings,
        *,
        timeout_seconds: float,
    ) -> None:
        self._source = source
        self._settings = settings
        self._timeout = timeout_seconds

    async def compute_metadata(self) -> PageMetadata:
        """Walk pages from 1 until the source ends or the walk limit is hit."""
        counts: list[int] = []
        page = 1

        log.info("metadata_walk_started", walk_limit=self._settings.walk_limit)
        try:
            while page <= self._settings.walk_limit:
                items = await asyncio.wait_for(
                    self._source.list_items(page), timeout=self._timeout
                )
                if not items:
                    # An empty page marks the real end; it is not counted
                    log.warning("metadata_empty_page", page=page)
                    break

                counts.append(len(items))
                log.debug("metadata_page_counted", page=page, items=len(items))

                has_next = await asyncio.wait_for(
                    self._source.has_next_page(page), timeout=self._timeout
                )
                if not has_next:
                    break

                page += 1
                if self._settings.walk_delay_seconds:
                    await asyncio.sleep(self._settings.walk_delay_seconds)
        except Exception:
            if not counts:
                log.warning("metadata_walk_failed", page=page, fallback=True, exc_info=True)
                return fallback_metadata(self._settings)
            log.warning("metadata_walk_interrupted", page=page, pages_counted=len(counts))

        return self._summarise(counts)

    def _summarise(self, counts: list[int]) -> PageMetadata:
        if not counts:
            log.warning("metadata_source_empty")
            return PageMetadata.build(total_pages=1, min_items_per_page=0, avg_items_per_page=0)

        total_pages = min(len(counts), self._settings.max_pages)
        metadata = PageMetadata.build(
            total_pages=total_pages,
            min_items_per_page=min(counts),
            avg_items_per_page=round(sum(counts) / len(counts)),
            page_counts=tuple(counts),
        )
        log.info(
            "metadata_walk_complete",
            pages_found=len(counts),
            total_pages=metadata.total_pages,
            min_items_per_page=metadata.min_items_per_page,
            avg_items_per_page=metadata.avg_items_per_page,
            estimated_total=metadata.estimated_total,
        )
        return metadata
