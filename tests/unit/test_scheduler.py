"""Unit tests for tiered selection scheduling in schedulers.py.

Timers are either zeroed through SchedulingSettings or replaced with an
AsyncMock sleeper, so no test waits on real delays.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from quotegrid.config import SchedulingSettings
from quotegrid.models.quote import Loading, Placeholder
from quotegrid.schedulers import (
    BatchSpec,
    SelectionLoad,
    SelectionMode,
    VirtualScrollFrontier,
    plan_selection,
    run_staggered_batches,
)
from tests.fakes import make_quotes


def _zero_delays(**overrides: float | int) -> SchedulingSettings:
    values: dict[str, float | int] = {
        "stagger_delay_seconds": 0,
        "scroll_debounce_seconds": 0,
        "virtual_prefetch_delay_seconds": 0,
    }
    values.update(overrides)
    return SchedulingSettings(**values)


class RecordingLoader:
    """Cell loader that returns one quote per requested position."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls: list[tuple[int, int]] = []
        self.delay = delay

    async def __call__(self, offset: int, limit: int) -> list:
        self.calls.append((offset, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        return make_quotes(1, limit)


class TestPlanSelection:
    def test_small_selection_is_immediate(self) -> None:
        plan = plan_selection(80)
        assert plan.mode is SelectionMode.IMMEDIATE
        assert plan.initial_size == 80
        assert plan.batches == ()

    def test_exactly_initial_batch_is_immediate(self) -> None:
        assert plan_selection(100).mode is SelectionMode.IMMEDIATE

    def test_medium_selection_is_staggered(self) -> None:
        plan = plan_selection(350)

        assert plan.mode is SelectionMode.STAGGERED
        assert plan.initial_size == 100
        assert plan.batches == (
            BatchSpec(offset=100, limit=100, delay_seconds=1.0),
            BatchSpec(offset=200, limit=100, delay_seconds=2.0),
            BatchSpec(offset=300, limit=50, delay_seconds=3.0),
        )

    def test_staggered_upper_boundary(self) -> None:
        plan = plan_selection(600)
        assert plan.mode is SelectionMode.STAGGERED
        assert len(plan.batches) == 5

    def test_large_selection_is_virtual_scroll(self) -> None:
        plan = plan_selection(601)
        assert plan.mode is SelectionMode.VIRTUAL_SCROLL
        assert plan.initial_size == 100
        assert plan.batches == ()

    def test_rejects_empty_selection(self) -> None:
        with pytest.raises(ValueError):
            plan_selection(0)


class TestStaggeredBatches:
    async def test_each_batch_waits_its_own_delay(self) -> None:
        sleeper = AsyncMock()
        loader = AsyncMock()
        batches = plan_selection(350).batches

        await run_staggered_batches(batches, loader, sleep=sleeper)

        assert [c.args[0] for c in sleeper.await_args_list] == [1.0, 2.0, 3.0]
        assert [c.args for c in loader.await_args_list] == [(100, 100), (200, 100), (300, 50)]


class TestVirtualScrollFrontier:
    def test_next_batch_starts_at_first_unloaded(self) -> None:
        frontier = VirtualScrollFrontier(1000, 100, loaded=range(100))
        assert frontier.next_batch() == (100, 100)

    def test_next_batch_stops_at_loaded_position(self) -> None:
        frontier = VirtualScrollFrontier(300, 100, loaded=[*range(100), 150])
        assert frontier.next_batch() == (100, 50)

    def test_next_batch_clipped_at_end(self) -> None:
        frontier = VirtualScrollFrontier(130, 100, loaded=range(100))
        assert frontier.next_batch() == (100, 30)

    async def test_load_next_marks_positions(self) -> None:
        frontier = VirtualScrollFrontier(250, 100, loaded=range(100))
        loader = AsyncMock()

        assert await frontier.load_next(loader) is True
        assert await frontier.load_next(loader) is True
        assert await frontier.load_next(loader) is False

        assert frontier.complete is True
        assert [c.args for c in loader.await_args_list] == [(100, 100), (200, 50)]

    async def test_one_batch_in_flight(self) -> None:
        frontier = VirtualScrollFrontier(1000, 100)
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_loader(offset: int, limit: int) -> None:
            started.set()
            await release.wait()

        first = asyncio.create_task(frontier.load_next(slow_loader))
        await started.wait()

        assert frontier.is_loading is True
        assert await frontier.load_next(slow_loader) is False

        release.set()
        assert await first is True
        assert frontier.is_loading is False

    async def test_failed_load_leaves_positions_unloaded(self) -> None:
        frontier = VirtualScrollFrontier(200, 100)
        loader = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await frontier.load_next(loader)

        assert frontier.is_loading is False
        assert frontier.next_batch() == (0, 100)


class TestSelectionLoad:
    async def test_cells_start_loading(self) -> None:
        plan = plan_selection(50)
        selection = SelectionLoad("s1", plan, RecordingLoader(), _zero_delays())

        assert all(isinstance(cell, Loading) for cell in selection.cells)
        assert selection.status().loaded == 0

    async def test_fill_only_overwrites_pending_cells(self) -> None:
        plan = plan_selection(3)
        selection = SelectionLoad("s1", plan, RecordingLoader(), _zero_delays())

        selection.fill(0, make_quotes(1, 2))
        selection.fill(1, [Placeholder.failed(), Placeholder.failed(), Placeholder.failed()])

        assert [cell.kind for cell in selection.cells] == ["quote", "quote", "placeholder"]
        assert selection.complete is True

    async def test_staggered_selection_fills_everything(self) -> None:
        loader = RecordingLoader()
        plan = plan_selection(350)
        selection = SelectionLoad("s1", plan, loader, _zero_delays())

        await selection.load_batch(0, plan.initial_size)
        selection.start_background()
        await selection.drain()

        assert selection.complete is True
        assert sorted(loader.calls) == [(0, 100), (100, 100), (200, 100), (300, 50)]

    async def test_virtual_scroll_prefetches_three_batches(self) -> None:
        loader = RecordingLoader()
        plan = plan_selection(2000)
        selection = SelectionLoad("s1", plan, loader, _zero_delays())

        await selection.load_batch(0, plan.initial_size)
        selection.start_background()
        await selection.drain()

        assert loader.calls == [(0, 100), (100, 100), (200, 100), (300, 100)]
        assert selection.status().loaded == 400
        assert selection.complete is False

    async def test_prefetch_waits_between_batches(self) -> None:
        sleeper = AsyncMock()
        plan = plan_selection(2000)
        selection = SelectionLoad(
            "s1",
            plan,
            RecordingLoader(),
            _zero_delays(virtual_prefetch_delay_seconds=0.2),
            sleep=sleeper,
        )

        selection.start_background()
        await selection.drain()

        assert [c.args[0] for c in sleeper.await_args_list] == [0.2, 0.2, 0.2]

    async def test_scroll_signal_loads_next_batch(self) -> None:
        loader = RecordingLoader()
        plan = plan_selection(2000)
        selection = SelectionLoad("s1", plan, loader, _zero_delays())

        assert selection.signal_scroll() is True
        await selection.drain()

        assert loader.calls == [(100, 100)]

    async def test_rapid_signals_are_debounced(self) -> None:
        loader = RecordingLoader()
        plan = plan_selection(2000)
        selection = SelectionLoad(
            "s1", plan, loader, _zero_delays(scroll_debounce_seconds=0.05)
        )

        for _ in range(5):
            selection.signal_scroll()
        await selection.drain()

        assert loader.calls == [(100, 100)]

    async def test_signal_ignored_while_loading(self) -> None:
        loader = RecordingLoader(delay=0.05)
        plan = plan_selection(2000)
        selection = SelectionLoad("s1", plan, loader, _zero_delays())

        selection.signal_scroll()
        await asyncio.sleep(0.01)
        assert selection.frontier is not None
        assert selection.frontier.is_loading is True

        selection.signal_scroll()
        await selection.drain()

        assert loader.calls == [(100, 100)]

    async def test_signal_without_frontier_is_ignored(self) -> None:
        selection = SelectionLoad("s1", plan_selection(350), RecordingLoader(), _zero_delays())
        assert selection.signal_scroll() is False

    async def test_background_failure_is_logged_not_raised(self) -> None:
        loader = AsyncMock(side_effect=RuntimeError("boom"))
        selection = SelectionLoad("s1", plan_selection(350), loader, _zero_delays())

        selection.start_background()
        await selection.drain()

        assert selection.loaded == 0

    async def test_cancel_stops_pending_work(self) -> None:
        async def long_sleep(_seconds: float) -> None:
            await asyncio.sleep(10)

        loader = RecordingLoader()
        selection = SelectionLoad(
            "s1", plan_selection(350), loader, _zero_delays(), sleep=long_sleep
        )

        selection.start_background()
        await asyncio.sleep(0)
        selection.cancel()
        await selection.drain()

        assert loader.calls == []
