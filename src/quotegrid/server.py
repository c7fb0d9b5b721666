"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import quotegrid.tools.fill_selection as t_fill_selection
import quotegrid.tools.get_all_quotes as t_get_all_quotes
import quotegrid.tools.get_quote_link as t_get_quote_link
import quotegrid.tools.get_quote_range as t_get_quote_range
import quotegrid.tools.get_random_quotes as t_get_random_quotes
import quotegrid.tools.get_selection as t_get_selection
import quotegrid.tools.get_stats as t_get_stats
import quotegrid.tools.scroll_selection as t_scroll_selection
from quotegrid import __version__
from quotegrid.config import Settings
from quotegrid.errors import QuoteGridError
from quotegrid.orchestrator import QuoteOrchestrator
from quotegrid.source import QuotesSiteSource, build_http_client
from quotegrid.state import AppState
from quotegrid.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
        source=settings.source.base_url,
    )

    http_client = build_http_client(settings.source)
    source = QuotesSiteSource(http_client, settings.source.base_url)
    orchestrator = QuoteOrchestrator(source, settings)

    state = AppState(settings=settings, orchestrator=orchestrator, http_client=http_client)

    # Metadata walk before serving; it never raises, worst case is the fallback
    await orchestrator.initialize()

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        estimated_total=orchestrator.metadata.estimated_total if orchestrator.metadata else 0,
    )

    try:
        yield state
    finally:
        await orchestrator.close()
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("quotegrid", lifespan=lifespan)
# FastMCP has no version kwarg; set it on the underlying Server so the
# initialize handshake reports ours, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: QuoteGridError) -> CallToolResult:
    """Convert a QuoteGridError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


async def _call_tool(tool: str, call: Awaitable[dict]) -> object:
    try:
        return await call
    except QuoteGridError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise


@mcp.tool()
async def get_random_quotes(count: int, ctx: Context) -> object:
    """Return `count` quotes sampled at random from the source.

    Small counts are drawn from a few random pages and shuffled; larger counts
    are read in page order from the start.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("get_random_quotes", t_get_random_quotes.handle(count, state))


@mcp.tool()
async def get_quote_range(offset: int, limit: int, ctx: Context) -> object:
    """Return the quotes at logical positions offset..offset+limit-1.

    `total` is an estimate from the initial page walk and `has_more` is
    derived from it. Fewer than `limit` quotes may come back near the end.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("get_quote_range", t_get_quote_range.handle(offset, limit, state))


@mcp.tool()
async def get_stats(ctx: Context) -> object:
    """Report cache size, fetch counters and the pagination metadata."""
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("get_stats", t_get_stats.handle(state))


@mcp.tool()
async def fill_selection(count: int, ctx: Context) -> object:
    """Start filling a selection of `count` cells.

    The first 100 cells are loaded before this returns. Up to 600 cells, the
    rest arrive in timed batches; beyond that, call scroll_selection to pull
    in further batches. Poll get_selection for progress.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("fill_selection", t_fill_selection.handle(count, state))


@mcp.tool()
async def scroll_selection(selection_id: str, ctx: Context) -> object:
    """Signal that the viewport of a large selection moved (debounced)."""
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool(
        "scroll_selection", t_scroll_selection.handle(selection_id, state)
    )


@mcp.tool()
async def get_selection(selection_id: str, ctx: Context, release: bool = False) -> object:
    """Return the cells of a selection; pass release=true to discard it afterwards."""
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool(
        "get_selection", t_get_selection.handle(selection_id, release, state)
    )


@mcp.tool()
async def get_quote_link(quote_id: str, ctx: Context) -> object:
    """Return a Goodreads link for a quote seen earlier in this session."""
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("get_quote_link", t_get_quote_link.handle(quote_id, state))


@mcp.tool()
async def get_all_quotes(ctx: Context, enrich: bool = False) -> object:
    """Return every quote on every page, in page order.

    With enrich=true each quote also gets a Goodreads link, looked up on its
    author page; quotes without one get a Goodreads search URL instead.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _call_tool("get_all_quotes", t_get_all_quotes.handle(enrich, state))


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
