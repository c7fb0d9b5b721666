"""Tiered scheduling for large client selections.

A selection of N cells is filled in tiers:

- the first ``min(initial_batch_size, N)`` cells immediately;
- if at most ``staggered_max_remaining`` cells remain, the rest in batches
  issued 1s, 2s, 3s... after the initial fetch (``STAGGERED``);
- otherwise on demand: a ``VirtualScrollFrontier`` loads one batch per
  (debounced) scroll signal, never more than one batch at a time
  (``VIRTUAL_SCROLL``).

These coroutines decide *when* batches are requested; how a batch is
resolved is up to the loader the orchestrator passes in.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from quotegrid.models.quote import Loading
from quotegrid.models.session import SelectionStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine, Iterable
    from typing import Any

    from quotegrid.config import SchedulingSettings
    from quotegrid.models.quote import QuoteCell

    BatchLoader = Callable[[int, int], Awaitable[None]]
    CellLoader = Callable[[int, int], Awaitable[list[QuoteCell]]]
    Sleeper = Callable[[float], Awaitable[Any]]

log = structlog.get_logger()


class SelectionMode(StrEnum):
    IMMEDIATE = "immediate"
    STAGGERED = "staggered"
    VIRTUAL_SCROLL = "virtual_scroll"


@dataclass(frozen=True)
class BatchSpec:
    offset: int
    limit: int
    delay_seconds: float = 0.0


@dataclass(frozen=True)
class SelectionPlan:
    total: int
    initial_size: int
    mode: SelectionMode
    # Only populated for STAGGERED plans
    batches: tuple[BatchSpec, ...] = ()


def plan_selection(
    total: int,
    *,
    initial_batch_size: int = 100,
    batch_size: int = 100,
    staggered_max_remaining: int = 500,
    stagger_delay_seconds: float = 1.0,
) -> SelectionPlan:
    """Split a selection of ``total`` cells into scheduling tiers."""
    if total < 1:
        raise ValueError("total must be >= 1")

    initial = min(initial_batch_size, total)
    remaining = total - initial

    if remaining == 0:
        return SelectionPlan(total=total, initial_size=initial, mode=SelectionMode.IMMEDIATE)

    if remaining > staggered_max_remaining:
        return SelectionPlan(
            total=total, initial_size=initial, mode=SelectionMode.VIRTUAL_SCROLL
        )

    batches = tuple(
        BatchSpec(
            offset=initial + start,
            limit=min(batch_size, remaining - start),
            delay_seconds=(k + 1) * stagger_delay_seconds,
        )
        for k, start in enumerate(range(0, remaining, batch_size))
    )
    return SelectionPlan(
        total=total,
        initial_size=initial,
        mode=SelectionMode.STAGGERED,
        batches=batches,
    )


async def run_staggered_batches(
    batches: Iterable[BatchSpec],
    loader: BatchLoader,
    *,
    sleep: Sleeper | None = None,
) -> None:
    """Issue every batch after its own delay, measured from now."""
    sleeper = sleep or asyncio.sleep

    async def _run(batch: BatchSpec) -> None:
        await sleeper(batch.delay_seconds)
        log.info("staggered_batch_started", offset=batch.offset, limit=batch.limit)
        await loader(batch.offset, batch.limit)

    await asyncio.gather(*(_run(batch) for batch in batches))


class VirtualScrollFrontier:
    """Loaded/unloaded bookkeeping for demand-driven loading.

    Positions are logical cell indexes ``0..total_positions - 1``. Batches
    are taken from the first unloaded position onward, and ``is_loading``
    keeps at most one batch in flight.
    """

    def __init__(
        self,
        total_positions: int,
        batch_size: int,
        loaded: Iterable[int] = (),
    ) -> None:
        self.total_positions = total_positions
        self.batch_size = batch_size
        self.loaded_positions: set[int] = set(loaded)
        self.is_loading = False

    @property
    def complete(self) -> bool:
        return len(self.loaded_positions) >= self.total_positions

    def next_batch(self) -> tuple[int, int] | None:
        """Return (offset, limit) of the next unloaded run, or None when done."""
        offset = next(
            (p for p in range(self.total_positions) if p not in self.loaded_positions),
            None,
        )
        if offset is None:
            return None

        limit = 0
        end = min(offset + self.batch_size, self.total_positions)
        for position in range(offset, end):
            if position in self.loaded_positions:
                break
            limit += 1
        return offset, limit

    async def load_next(self, loader: BatchLoader) -> bool:
        """Load the next batch. Returns False if busy or nothing is left."""
        if self.is_loading:
            return False
        batch = self.next_batch()
        if batch is None:
            return False

        offset, limit = batch
        self.is_loading = True
        try:
            log.info("virtual_scroll_batch_started", offset=offset, limit=limit)
            await loader(offset, limit)
            self.loaded_positions.update(range(offset, offset + limit))
            log.info(
                "virtual_scroll_batch_complete",
                loaded=len(self.loaded_positions),
                total=self.total_positions,
            )
        finally:
            self.is_loading = False
        return True


class SelectionLoad:
    """One client selection: its cells and the schedule that fills them.

    Owned by the orchestrator session. Abandoning a selection just drops the
    reference; batches still in flight land in this object harmlessly.
    """

    def __init__(
        self,
        selection_id: str,
        plan: SelectionPlan,
        load_cells: CellLoader,
        settings: SchedulingSettings,
        *,
        sleep: Sleeper | None = None,
    ) -> None:
        self.selection_id = selection_id
        self.plan = plan
        self.cells: list[QuoteCell] = [Loading() for _ in range(plan.total)]
        self._load_cells = load_cells
        self._settings = settings
        self._sleep = sleep or asyncio.sleep
        self._tasks: set[asyncio.Task[None]] = set()
        self._debounce: asyncio.TimerHandle | None = None

        self.frontier: VirtualScrollFrontier | None = None
        if plan.mode is SelectionMode.VIRTUAL_SCROLL:
            self.frontier = VirtualScrollFrontier(
                plan.total,
                settings.batch_size,
                loaded=range(plan.initial_size),
            )

    @property
    def loaded(self) -> int:
        return sum(1 for cell in self.cells if not isinstance(cell, Loading))

    @property
    def complete(self) -> bool:
        return self.loaded == self.plan.total

    async def load_batch(self, offset: int, limit: int) -> None:
        cells = await self._load_cells(offset, limit)
        self.fill(offset, cells[:limit])

    def fill(self, offset: int, cells: list[QuoteCell]) -> None:
        for i, cell in enumerate(cells):
            position = offset + i
            # Only pending cells are written, so late or repeated batches are harmless
            if position < len(self.cells) and isinstance(self.cells[position], Loading):
                self.cells[position] = cell

    def start_background(self) -> None:
        """Schedule whatever follows the initial batch."""
        if self.plan.mode is SelectionMode.STAGGERED:
            self._spawn(
                run_staggered_batches(self.plan.batches, self.load_batch, sleep=self._sleep),
                "staggered",
            )
        elif self.plan.mode is SelectionMode.VIRTUAL_SCROLL:
            self._spawn(self._prefetch(), "virtual_prefetch")

    def signal_scroll(self) -> bool:
        """Debounced viewport signal. Returns False when there is nothing to load."""
        if self.frontier is None or self.frontier.complete:
            return False

        if self._debounce is not None:
            self._debounce.cancel()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(
            self._settings.scroll_debounce_seconds, self._on_scroll_settled
        )
        return True

    def _on_scroll_settled(self) -> None:
        self._debounce = None
        if self.frontier is None or self.frontier.is_loading:
            return
        self._spawn(self.frontier.load_next(self.load_batch), "virtual_scroll")

    async def _prefetch(self) -> None:
        if self.frontier is None:
            return
        for _ in range(self._settings.virtual_prefetch_batches):
            if not await self.frontier.load_next(self.load_batch):
                break
            await self._sleep(self._settings.virtual_prefetch_delay_seconds)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(self._guarded(coro, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guarded(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        """Fire-and-forget wrapper: failures are logged, never raised."""
        try:
            await coro
        except Exception:
            log.warning(
                "selection_task_failed",
                selection_id=self.selection_id,
                task=name,
                exc_info=True,
            )

    def cancel(self) -> None:
        """Stop scheduled work. Used at shutdown only."""
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        for task in self._tasks:
            task.cancel()

    async def drain(self) -> None:
        """Wait until no scheduled work remains for this selection."""
        while self._debounce is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0.01)

    def status(self) -> SelectionStatus:
        return SelectionStatus(
            selection_id=self.selection_id,
            mode=self.plan.mode.value,
            total=self.plan.total,
            loaded=self.loaded,
            complete=self.complete,
            is_loading=self.frontier.is_loading if self.frontier else bool(self._tasks),
            cells=list(self.cells),
        )
