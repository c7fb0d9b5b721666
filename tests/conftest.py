"""Shared test fixtures for the quotegrid test suite."""

from __future__ import annotations

import pytest

from tests.fakes import FakeSource


@pytest.fixture()
def uniform_source() -> FakeSource:
    """Ten pages of ten quotes, like the real site."""
    return FakeSource([10] * 10)
