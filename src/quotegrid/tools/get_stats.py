"""Tool handler for get_stats."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from quotegrid.state import AppState


async def handle(state: AppState) -> dict:
    """Handle a get_stats tool call."""
    log = structlog.get_logger().bind(tool="get_stats")
    log.info("handler_called")

    stats = state.orchestrator.get_stats()
    return stats.model_dump(mode="json")
