"""Streamable HTTP transport, health endpoint and security middleware."""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response

from quotegrid import __version__

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from quotegrid.config import Settings

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset({"2025-11-25", "2025-06-18", "2025-03-26"})
HEALTH_PATH = "/health"
_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$")


class MCPSecurityMiddleware:
    """Pure ASGI middleware in front of the MCP app.

    ``GET /health`` is answered here, before any check, so probes need no key.
    Every other HTTP request must pass, in order:
    1. Bearer key authentication (when enabled).
    2. Origin validation (localhost only) to prevent DNS rebinding.
    3. MCP-Protocol-Version validation.

    Pure ASGI (not BaseHTTPMiddleware) so SSE streams are never buffered.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
        transport: str = "http",
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key
        self.transport = transport

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["path"] == HEALTH_PATH and scope["method"] in ("GET", "HEAD"):
            response = JSONResponse(
                {"status": "ok", "version": __version__, "transport": self.transport}
            )
            await response(scope, receive, send)
            return

        rejection = self._check(Headers(scope=scope))
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        await self.app(scope, receive, send)

    def _check(self, headers: Headers) -> Response | None:
        if self.auth_enabled:
            auth_header = headers.get("authorization", "")
            scheme, _, token = auth_header.partition(" ")
            if scheme != "Bearer" or not secrets.compare_digest(token, self.auth_key or ""):
                return Response("Unauthorized", status_code=401)

        origin = headers.get("origin", "")
        if origin and not _LOCALHOST_ORIGIN.match(origin):
            log.warning("http_origin_rejected", origin=origin)
            return Response("Forbidden", status_code=403)

        proto_version = headers.get("mcp-protocol-version", "")
        if proto_version and proto_version not in SUPPORTED_PROTOCOL_VERSIONS:
            return Response(f"Unsupported protocol version: {proto_version}", status_code=400)

        return None


def resolve_auth_key(settings: Settings) -> str | None:
    """Return the configured key, generating one if auth is on but no key is set."""
    auth_key: str | None = settings.server.auth_key or None
    if settings.server.auth_enabled and not auth_key:
        auth_key = secrets.token_urlsafe(32)
        log.warning("http_auth_key_auto_generated", auth_key=auth_key)
    if not settings.server.auth_enabled:
        log.warning("http_auth_disabled")
    return auth_key


def build_http_app(mcp: FastMCP, settings: Settings) -> MCPSecurityMiddleware:
    return MCPSecurityMiddleware(
        mcp.streamable_http_app(),
        auth_enabled=settings.server.auth_enabled,
        auth_key=resolve_auth_key(settings),
        transport=settings.server.transport,
    )


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Start the MCP server with Streamable HTTP transport."""
    app = build_http_app(mcp, settings)
    log.info("http_server_starting", host=settings.server.host, port=settings.server.port)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # structlog handles logging
    )
