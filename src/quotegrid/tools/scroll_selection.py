"""Tool handler for scroll_selection: a debounced "viewport moved" signal."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import SelectionIdInput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(selection_id: str, state: AppState) -> dict:
    """Handle a scroll_selection tool call."""
    log = structlog.get_logger().bind(tool="scroll_selection", selection_id=selection_id)
    log.info("handler_called")

    try:
        validated = SelectionIdInput(selection_id=selection_id)
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide the selection_id returned by fill_selection.",
            recoverable=False,
        ) from exc

    status = state.orchestrator.scroll_selection(validated.selection_id)
    return status.model_dump(mode="json")
