"""Wall-clock access for freshness checks and the sync scheduler."""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Source of epoch milliseconds plus an async sleep.

    Repositories take a clock so tests can drive simulated time.
    """

    def now_ms(self) -> int: ...

    async def sleep(self, ms: float) -> None: ...


class SystemClock:
    """Clock backed by the system time and the running event loop."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)
