"""Integration test fixtures.

``app_state`` is a fully wired AppState around an in-memory source, so tool
handlers run their whole pipeline without network access. ``subprocess_env``
configures a real server process whose upstream is unreachable, which makes
the metadata walk fall back immediately.
"""

from __future__ import annotations

import os
import random
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from quotegrid.orchestrator import QuoteOrchestrator
from quotegrid.state import AppState
from tests.fakes import EnrichingFakeSource, make_quotes, make_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests."""
    env = os.environ.copy()
    src_dir = str(Path(__file__).resolve().parents[2] / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_dir, env.get("PYTHONPATH")]))
    env["QUOTEGRID__SERVER__TRANSPORT"] = "stdio"
    env["QUOTEGRID__SOURCE__BASE_URL"] = "http://127.0.0.1:1"
    env["QUOTEGRID__SOURCE__TIMEOUT_SECONDS"] = "2"
    env["QUOTEGRID__PAGINATION__WALK_DELAY_SECONDS"] = "0"
    env["QUOTEGRID__LOGGING__LEVEL"] = "WARNING"
    # Keep a developer's quotegrid.yaml out of the subprocess
    env["XDG_CONFIG_HOME"] = str(tmp_path)
    return env


@pytest.fixture()
async def app_state() -> AsyncGenerator[AppState, None]:
    """AppState over ten pages of ten quotes, with one known Goodreads link."""
    first = make_quotes(1, 1)[0]
    source = EnrichingFakeSource(
        [10] * 10, links={first.id: "https://www.goodreads.com/author/show/1.Author_1"}
    )
    settings = make_settings()
    orchestrator = QuoteOrchestrator(source, settings, rng=random.Random(5))
    await orchestrator.initialize()

    yield AppState(settings=settings, orchestrator=orchestrator)

    await orchestrator.close()
