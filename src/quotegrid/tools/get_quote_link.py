"""Tool handler for get_quote_link.

Looks up the Goodreads link for a quote already seen in this session. When
the source cannot provide one, a Goodreads search URL is returned instead and
``fallback`` is set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import GetQuoteLinkInput, GetQuoteLinkOutput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(quote_id: str, state: AppState) -> dict:
    """Handle a get_quote_link tool call."""
    log = structlog.get_logger().bind(tool="get_quote_link", quote_id=quote_id)
    log.info("handler_called")

    try:
        validated = GetQuoteLinkInput(quote_id=quote_id)
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a quote id from a previous quote listing (max 500 chars).",
            recoverable=False,
        ) from exc

    url, fallback = await state.orchestrator.quote_link(validated.quote_id)
    log.info("link_resolved", fallback=fallback)

    output = GetQuoteLinkOutput(quote_id=validated.quote_id, goodreads_url=url, fallback=fallback)
    return output.model_dump(mode="json")
