from __future__ import annotations

import asyncio

import pytest

from theme_gallery.crawlers.rate_limit import RequestTicker


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_ticker_spaces_sequential_admissions_by_interval() -> None:
    clock = FakeClock()
    ticker = RequestTicker(2.0, clock=clock, sleep=clock.sleep)
    admitted: list[float] = []

    async def run() -> None:
        for _ in range(3):
            await ticker.wait()
            admitted.append(clock())

    asyncio.run(run())

    assert admitted == [100.0, 102.0, 104.0]
    assert clock.sleeps == [2.0, 2.0]


def test_ticker_spaces_concurrent_admissions_by_interval() -> None:
    clock = FakeClock()
    ticker = RequestTicker(0.5, clock=clock, sleep=clock.sleep)
    admitted: list[float] = []

    async def worker() -> None:
        await ticker.wait()
        admitted.append(clock())

    async def run() -> None:
        await asyncio.gather(*(worker() for _ in range(4)))

    asyncio.run(run())

    admitted.sort()
    gaps = [later - earlier for earlier, later in zip(admitted, admitted[1:])]
    assert len(admitted) == 4
    assert all(gap >= 0.5 for gap in gaps)


def test_ticker_does_not_delay_after_idle_period() -> None:
    clock = FakeClock()
    ticker = RequestTicker(1.0, clock=clock, sleep=clock.sleep)

    async def run() -> None:
        await ticker.wait()
        clock.now += 10
        await ticker.wait()

    asyncio.run(run())

    assert clock.sleeps == []


def test_zero_interval_never_sleeps() -> None:
    clock = FakeClock()
    ticker = RequestTicker(0, clock=clock, sleep=clock.sleep)

    async def run() -> None:
        await asyncio.gather(*(ticker.wait() for _ in range(10)))

    asyncio.run(run())

    assert clock.sleeps == []


def test_reset_changes_interval_and_negative_is_rejected() -> None:
    ticker = RequestTicker(1.0)
    ticker.reset(0.25)
    assert ticker.interval == 0.25

    with pytest.raises(ValueError):
        RequestTicker(-1)
    with pytest.raises(ValueError):
        ticker.reset(-0.1)
