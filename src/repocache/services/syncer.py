"""Background refresh scheduler.

Keeps a repository's cache warm by refreshing exactly when the data goes
stale. The first delay is aligned to the staleness boundary of the data that
is already cached; after that the scheduler ticks every period. Both phases
live in one asyncio task.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from repocache.clock import Clock
from repocache.data.config import SYNC_INTERVAL_FLOOR_MS

logger = logging.getLogger(__name__)

FetchedCallback = Callable[[Any], Any]


class SyncPhase(str, Enum):
    """Where the scheduler currently is in its schedule."""

    IDLE = "idle"  # no task
    ALIGNING = "aligning"  # waiting for the cached data to go stale
    STEADY = "steady"  # ticking every period


async def notify(callback: FetchedCallback | None, data: Any) -> None:
    """Call a plain or coroutine callback with freshly fetched data."""
    if callback is None:
        return
    result = callback(data)
    if inspect.isawaitable(result):
        await result


class SyncScheduler:
    """Self-adjusting periodic refresh for one repository.

    Usage:
        scheduler = SyncScheduler(repo.refresh, period_ms=60_000, clock=clock)
        scheduler.start(first_delay_ms=12_000)  # align, then every minute
        ...
        scheduler.stop()

    A failing tick is logged and the schedule keeps going. Stopping cancels
    the pending sleep but never the shared fetch a tick is waiting on.
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any]],
        period_ms: int,
        clock: Clock,
        name: str = "repository",
    ):
        """Initialize the scheduler.

        Args:
            refresh: Async callable performing one refresh and returning data.
            period_ms: Steady-state period; floored to SYNC_INTERVAL_FLOOR_MS.
            clock: Time source used for deadlines and sleeping.
            name: Label used in logs and the task name.
        """
        self._refresh = refresh
        self._period_ms = max(period_ms, SYNC_INTERVAL_FLOOR_MS)
        self._clock = clock
        self._name = name
        self._phase = SyncPhase.IDLE
        self._task: asyncio.Task | None = None
        self._on_fetched: FetchedCallback | None = None

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def period_ms(self) -> int:
        return self._period_ms

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self, on_fetched: FetchedCallback | None = None, first_delay_ms: float | None = None) -> None:
        """Start (or restart) the schedule.

        Args:
            on_fetched: Called with the data after every successful tick.
            first_delay_ms: Delay until the first tick, for realigning to the
                staleness boundary. None starts directly in the steady phase,
                one period from now.
        """
        self.stop()
        self._on_fetched = on_fetched

        if first_delay_ms is None:
            self._phase = SyncPhase.STEADY
            first_delay_ms = self._period_ms
        else:
            self._phase = SyncPhase.ALIGNING
            first_delay_ms = max(first_delay_ms, SYNC_INTERVAL_FLOOR_MS)

        logger.debug(
            f"Sync for {self._name} {self._phase.value}: first tick in {first_delay_ms:.0f}ms, "
            f"then every {self._period_ms}ms"
        )
        self._task = asyncio.create_task(self._run(first_delay_ms), name=f"repocache-sync-{self._name}")

    def stop(self) -> None:
        """Cancel the schedule. Safe to call when already idle."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"Sync for {self._name} stopped")
        self._phase = SyncPhase.IDLE

    async def aclose(self) -> None:
        """Stop and wait for the scheduler task to unwind."""
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self, first_delay_ms: float) -> None:
        # Deadlines advance by whole periods so slow fetches don't shift the phase.
        deadline = self._clock.now_ms() + first_delay_ms
        while True:
            await self._clock.sleep(deadline - self._clock.now_ms())
            await self._tick()
            if self._phase is SyncPhase.ALIGNING:
                self._phase = SyncPhase.STEADY
                logger.debug(f"Sync for {self._name} aligned, now steady")
            deadline += self._period_ms
            now = self._clock.now_ms()
            if deadline < now:
                # Ticks missed during a slow fetch are dropped, not replayed
                missed = (now - deadline) // self._period_ms + 1
                deadline += missed * self._period_ms
                logger.debug(f"Sync for {self._name} skipped {missed} missed tick(s)")

    async def _tick(self) -> None:
        try:
            data = await self._refresh()
            await notify(self._on_fetched, data)
        except Exception as e:
            logger.warning(f"Sync tick failed for {self._name}: {e}")
