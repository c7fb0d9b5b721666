from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, model_validator

from quotegrid.models.quote import Quote


class PageMetadata(BaseModel):
    """Advisory estimate of the source's shape, computed once per session.

    ``min_items_per_page`` is the offset denominator; ``avg_items_per_page``
    is for reporting only. Real pages may still hold fewer items than the
    minimum because the walk that produced it is bounded.
    """

    model_config = ConfigDict(frozen=True)

    total_pages: int = Field(ge=1)
    min_items_per_page: int = Field(ge=0)
    avg_items_per_page: int = Field(ge=0)
    estimated_total: int = Field(ge=0)
    page_counts: tuple[int, ...] = ()
    fallback: bool = False

    @model_validator(mode="after")
    def _check_estimate(self) -> PageMetadata:
        if self.estimated_total != self.min_items_per_page * self.total_pages:
            raise ValueError("estimated_total must equal min_items_per_page * total_pages")
        return self

    @classmethod
    def build(
        cls,
        *,
        total_pages: int,
        min_items_per_page: int,
        avg_items_per_page: int,
        page_counts: tuple[int, ...] = (),
        fallback: bool = False,
    ) -> PageMetadata:
        return cls(
            total_pages=total_pages,
            min_items_per_page=min_items_per_page,
            avg_items_per_page=avg_items_per_page,
            estimated_total=min_items_per_page * total_pages,
            page_counts=page_counts,
            fallback=fallback,
        )


class RangeRequest(BaseModel):
    offset: int = Field(ge=0)
    limit: int = Field(ge=1)


@dataclass(frozen=True)
class RangeResult:
    items: list[Quote]
    total: int
    has_more: bool


@dataclass(frozen=True)
class AllQuotesResult:
    items: list[Quote]
    total_pages: int
    # Quotes whose link is the Goodreads search fallback
    fallback_links: int = 0


@dataclass(frozen=True)
class FetchCounters:
    """Snapshot of the page fetcher's external-I/O counters."""

    external_requests: int = 0
    items_fetched: int = 0
    failures: int = 0
