"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from quotegrid.config import Settings
    from quotegrid.orchestrator import QuoteOrchestrator


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    orchestrator: QuoteOrchestrator
    http_client: httpx.AsyncClient | None = None

    def validation_context(self) -> dict[str, int]:
        """Upper bounds read by the tool input validators."""
        strategy = self.settings.strategy
        return {
            "max_count": strategy.max_count,
            "max_range_limit": strategy.max_range_limit,
            "max_selection": strategy.max_selection,
        }
