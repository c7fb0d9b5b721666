"""Tool handler for fill_selection.

Starts a tiered load of ``count`` cells. The first tier is loaded before this
returns; the remainder is scheduled in the background (staggered batches) or
left for scroll_selection to pull in (virtual scroll). Poll get_selection for
progress.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import FillSelectionInput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(count: int, state: AppState) -> dict:
    """Handle a fill_selection tool call."""
    log = structlog.get_logger().bind(tool="fill_selection", count=count)
    log.info("handler_called")

    try:
        validated = FillSelectionInput.model_validate(
            {"count": count}, context=state.validation_context()
        )
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                f"Provide a count between 1 and {state.settings.strategy.max_selection}."
            ),
            recoverable=False,
        ) from exc

    status = await state.orchestrator.start_selection(validated.count)
    log.info(
        "selection_first_tier_loaded",
        selection_id=status.selection_id,
        mode=status.mode,
        loaded=status.loaded,
    )
    return status.model_dump(mode="json")
