"""Fixed-interval request ticker used to pace outbound requests."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional


class RequestTicker:
    """
    Issues one permit per interval

    Every task calls `wait()` before starting a new request. Successive
    admissions are spaced at least `interval` seconds apart. Requests already
    in flight are not counted, so this paces starts rather than capping
    concurrency. An interval of zero admits immediately.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError("ticker interval must not be negative")
        self._interval = float(interval)
        self._clock = clock
        self._sleep = sleep
        self._next_tick: Optional[float] = None

    @property
    def interval(self) -> float:
        return self._interval

    def reset(self, interval: float) -> None:
        """Change the spacing between permits."""
        if interval < 0:
            raise ValueError("ticker interval must not be negative")
        self._interval = float(interval)
        self._next_tick = None

    async def wait(self) -> None:
        if self._interval == 0:
            return

        # Reserve the slot before suspending so concurrent callers queue up behind it
        now = self._clock()
        slot = now if self._next_tick is None else max(now, self._next_tick)
        self._next_tick = slot + self._interval

        delay = slot - now
        if delay > 0:
            await self._sleep(delay)
