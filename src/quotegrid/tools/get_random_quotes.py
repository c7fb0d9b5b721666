"""Tool handler for get_random_quotes.

No MCP or FastMCP imports: server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import GetRandomQuotesInput, GetRandomQuotesOutput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(count: int, state: AppState) -> dict:
    """Handle a get_random_quotes tool call."""
    log = structlog.get_logger().bind(tool="get_random_quotes", count=count)
    log.info("handler_called")

    try:
        validated = GetRandomQuotesInput.model_validate(
            {"count": count}, context=state.validation_context()
        )
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=f"Provide a count between 1 and {state.settings.strategy.max_count}.",
            recoverable=False,
        ) from exc

    quotes = await state.orchestrator.get_random_quotes(validated.count)
    log.info("random_quotes_complete", returned=len(quotes))

    output = GetRandomQuotesOutput(quotes=quotes, count=len(quotes))
    return output.model_dump(mode="json")
