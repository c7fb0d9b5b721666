"""HTTP source for the paginated quotes site.

All network I/O against the upstream site goes through a single
QuotesSiteSource shared by the whole session. It receives an
httpx.AsyncClient via constructor injection; the server lifespan owns the
client lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.parser import ParsedPage, page_url, parse_author_page, parse_quotes_page

if TYPE_CHECKING:
    from quotegrid.config import SourceSettings
    from quotegrid.models.quote import Quote

log = structlog.get_logger()


def build_http_client(settings: SourceSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=settings.max_concurrency,
            max_keepalive_connections=max(1, settings.max_concurrency // 2),
        ),
    )


class QuotesSiteSource:
    """Implements SourceProtocol and EnrichingSourceProtocol over HTTP."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        # Pager flags seen while listing, so has_next_page rarely needs I/O
        self._has_next: dict[int, bool] = {}

    async def list_items(self, page_number: int) -> list[Quote]:
        parsed = await self._fetch_page(page_number)
        return parsed.items

    async def has_next_page(self, page_number: int) -> bool:
        known = self._has_next.get(page_number)
        if known is not None:
            return known
        parsed = await self._fetch_page(page_number)
        return parsed.has_next

    async def enrich(self, quote: Quote) -> str | None:
        """Look up the Goodreads link on the quote's author page."""
        if quote.goodreads_url:
            return quote.goodreads_url
        if not quote.author_url:
            return None
        html = await self._get_text(quote.author_url)
        try:
            return parse_author_page(html)
        except Exception as exc:
            raise QuoteGridError(
                code=ErrorCode.PAGE_PARSE_FAILED,
                message=f"Could not parse author page {quote.author_url}: {exc}",
                suggestion="The upstream author page layout may have changed.",
                recoverable=False,
            ) from exc

    async def _fetch_page(self, page_number: int) -> ParsedPage:
        url = page_url(self._base_url, page_number)
        html = await self._get_text(url)
        try:
            parsed = parse_quotes_page(html, page_number, self._base_url)
        except Exception as exc:
            raise QuoteGridError(
                code=ErrorCode.PAGE_PARSE_FAILED,
                message=f"Could not parse quotes from {url}: {exc}",
                suggestion="The upstream page layout may have changed.",
                recoverable=False,
            ) from exc

        self._has_next[page_number] = parsed.has_next
        log.debug(
            "source_page_parsed",
            page=page_number,
            items=len(parsed.items),
            has_next=parsed.has_next,
        )
        return parsed

    async def _get_text(self, url: str) -> str:
        """GET a URL and return its body.

        Raises QuoteGridError on network errors and non-2xx responses.
        """
        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise QuoteGridError(
                code=ErrorCode.PAGE_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The quotes site may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        if response.status_code == 404:
            raise QuoteGridError(
                code=ErrorCode.PAGE_NOT_FOUND,
                message=f"HTTP 404 fetching {url}",
                suggestion="The requested page does not exist on the quotes site.",
                recoverable=False,
            )
        if not response.is_success:
            raise QuoteGridError(
                code=ErrorCode.PAGE_FETCH_FAILED,
                message=f"HTTP {response.status_code} fetching {url}",
                suggestion="The quotes site may be temporarily unavailable.",
                recoverable=True,
            )

        log.debug(
            "source_fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text
