from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from quotegrid.models.pagination import PageMetadata
from quotegrid.models.quote import QuoteCell

SelectionModeName = Literal["immediate", "staggered", "virtual_scroll"]


class SessionFlags(BaseModel):
    initialized: bool
    metadata_fallback: bool
    cache_bounded: bool


class SessionStats(BaseModel):
    """Snapshot returned by ``QuoteOrchestrator.get_stats``."""

    cached_pages: int
    total_fetched: int
    external_requests: int
    failed_fetches: int
    active_selections: int
    metadata: PageMetadata | None
    session_flags: SessionFlags


class SelectionStatus(BaseModel):
    """Progress and cell contents of one client selection."""

    selection_id: str
    mode: SelectionModeName
    total: int
    loaded: int
    complete: bool
    is_loading: bool
    cells: list[QuoteCell]
