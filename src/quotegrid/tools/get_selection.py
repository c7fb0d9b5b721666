"""Tool handler for get_selection.

Returns the current cells of a selection. With ``release=True`` the selection
is dropped from the session after this snapshot; batches still in flight
finish without effect.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from quotegrid.errors import ErrorCode, QuoteGridError
from quotegrid.models.tools import SelectionIdInput

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(selection_id: str, release: bool, state: AppState) -> dict:
    """Handle a get_selection tool call."""
    log = structlog.get_logger().bind(tool="get_selection", selection_id=selection_id)
    log.info("handler_called", release=release)

    try:
        validated = SelectionIdInput(selection_id=selection_id)
    except ValueError as exc:
        raise QuoteGridError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide the selection_id returned by fill_selection.",
            recoverable=False,
        ) from exc

    status = state.orchestrator.get_selection(validated.selection_id)
    if release:
        state.orchestrator.release_selection(validated.selection_id)
    return status.model_dump(mode="json")
