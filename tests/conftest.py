"""Shared fixtures: simulated time and a fake fetch function."""

import asyncio
from typing import Any

import pytest

from repocache.data.config import RepocacheSettings

START_MS = 1_700_000_000_000


async def settle(rounds: int = 50) -> None:
    """Let every ready task run until the loop goes quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Clock whose time only moves when a test calls advance()."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    def now_ms(self) -> int:
        return int(self.now)

    async def sleep(self, ms: float) -> None:
        if ms <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        entry = (self.now + ms, future)
        self._sleepers.append(entry)
        try:
            await future
        finally:
            if entry in self._sleepers:
                self._sleepers.remove(entry)

    async def advance(self, ms: float) -> None:
        """Move time forward, waking sleepers in deadline order."""
        target = self.now + ms
        while True:
            await settle()
            due = [s for s in self._sleepers if s[0] <= target and not s[1].done()]
            if not due:
                break
            entry = min(due, key=lambda s: s[0])
            self._sleepers.remove(entry)
            self.now = max(self.now, entry[0])
            entry[1].set_result(None)
        self.now = target
        await settle()


class CountingFetch:
    """Async fetch function that counts calls.

    Returns payload, or raises error when set. When a gate event is given,
    each call waits for it before returning.
    """

    def __init__(
        self,
        payload: Any = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.payload = payload if payload is not None else {"whatever": True}
        self.error = error
        self.gate = gate
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> RepocacheSettings:
    """Settings isolated from the environment and .env file."""
    return RepocacheSettings(
        REPOCACHE_DB_PATH=str(tmp_path / "repocache.db"),
        REPOCACHE_AREA_PATH=None,
        REPOCACHE_BACKEND="local_variable",
        REPOCACHE_STALE_AFTER_MS=1000,
    )
