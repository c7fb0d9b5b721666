"""Protocol interfaces for swappable components.

The orchestrator and its components reference these protocols, not the
concrete classes. Tests plug in in-memory sources; a different upstream site
only needs a new ``SourceProtocol`` implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from quotegrid.models.quote import Quote


class SourceProtocol(Protocol):
    """The paginated upstream source.

    Both methods raise ``QuoteGridError`` on network or parse failure.
    """

    async def has_next_page(self, page_number: int) -> bool: ...

    async def list_items(self, page_number: int) -> list[Quote]: ...


@runtime_checkable
class EnrichingSourceProtocol(Protocol):
    """Optional capability: look up a supplementary link for a quote."""

    async def enrich(self, quote: Quote) -> str | None: ...


class PageCacheProtocol(Protocol):
    """Session page store keyed by page number."""

    def get(self, page_number: int) -> list[Quote] | None: ...

    def put(self, page_number: int, items: list[Quote]) -> list[Quote]: ...

    def invalidate(self, page_number: int | None = None) -> None: ...

    def __len__(self) -> int: ...
