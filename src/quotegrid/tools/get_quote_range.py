"""Tool handler for get_quote_range.

Maps a logical (offset, limit) window onto page fetches via the orchestrator.
A short page of results is a normal answer; ``has_more`` is computed from the
estimated total, not from the length of the returned list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import GetQuoteRangeInput, GetQuoteRangeOutput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(offset: int, limit: int, state: AppState) -> dict:
    """Handle a get_quote_range tool call."""
    log = structlog.get_logger().bind(tool="get_quote_range", offset=offset, limit=limit)
    log.info("handler_called")

    try:
        validated = GetQuoteRangeInput.model_validate(
            {"offset": offset, "limit": limit}, context=state.validation_context()
        )
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide offset >= 0 and limit between 1 and "
                f"{state.settings.strategy.max_range_limit}."
            ),
            recoverable=False,
        ) from exc

    result = await state.orchestrator.get_range(validated.offset, validated.limit)
    log.info("range_complete", returned=len(result.items), total=result.total)

    output = GetQuoteRangeOutput(
        quotes=result.items,
        count=len(result.items),
        offset=validated.offset,
        limit=validated.limit,
        total=result.total,
        has_more=result.has_more,
    )
    return output.model_dump(mode="json")
