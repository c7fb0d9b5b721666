"""Tool handler for get_all_quotes.

Reads every page the metadata walk found. With ``enrich`` set, each quote
also gets a Goodreads link; this issues one author-page lookup per quote, so
it is much slower than a plain listing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import GetAllQuotesInput, GetAllQuotesOutput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(enrich: bool, state: AppState) -> dict:
    """Handle a get_all_quotes tool call."""
    log = structlog.get_logger().bind(tool="get_all_quotes", enrich=enrich)
    log.info("handler_called")

    try:
        validated = GetAllQuotesInput.model_validate({"enrich": enrich})
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Pass enrich as true or false.",
            recoverable=False,
        ) from exc

    result = await state.orchestrator.get_all_quotes(enrich=validated.enrich)
    log.info(
        "all_quotes_complete",
        returned=len(result.items),
        fallback_links=result.fallback_links,
    )

    output = GetAllQuotesOutput(
        quotes=result.items,
        count=len(result.items),
        total_pages=result.total_pages,
        enriched=validated.enrich,
        fallback_links=result.fallback_links,
    )
    return output.model_dump(mode="json")
