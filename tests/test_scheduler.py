"""Tests for creepy_companion.services.scheduler and the background dispatcher."""

import asyncio

import pytest

from creepy_companion.services.dispatch import BackgroundDispatcher
from creepy_companion.services.scheduler import Scheduler


class TestScheduler:
    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Scheduler(interval_ms=0)

    def test_defaults_to_one_second(self) -> None:
        scheduler = Scheduler()
        assert scheduler.interval_ms == 1000
        assert scheduler.interval_seconds == 1.0
        assert not scheduler.is_running

    async def test_fires_on_cadence(self) -> None:
        calls = []
        scheduler = Scheduler(interval_ms=10)
        scheduler.start(lambda: calls.append(1))
        await asyncio.sleep(0.2)
        await scheduler.stop()
        assert len(calls) >= 3
        assert scheduler.ticks_fired == len(calls)

    async def test_start_is_idempotent(self) -> None:
        calls = []
        scheduler = Scheduler(interval_ms=20)
        assert scheduler.start(lambda: calls.append(1))
        assert not scheduler.start(lambda: calls.append(2))
        await asyncio.sleep(0.1)
        await scheduler.stop()
        assert set(calls) == {1}

    async def test_stop_cancels(self) -> None:
        scheduler = Scheduler(interval_ms=10)
        scheduler.start(lambda: None)
        assert scheduler.is_running
        await scheduler.stop()
        assert not scheduler.is_running
        fired = scheduler.ticks_fired
        await asyncio.sleep(0.05)
        assert scheduler.ticks_fired == fired

    async def test_stop_when_idle(self) -> None:
        await Scheduler().stop()

    async def test_failing_tick_does_not_stop_the_timer(self) -> None:
        calls = []

        def explode():
            calls.append(1)
            raise RuntimeError("boom")

        scheduler = Scheduler(interval_ms=10)
        scheduler.start(explode)
        await asyncio.sleep(0.15)
        assert scheduler.is_running
        await scheduler.stop()
        assert len(calls) >= 2

    async def test_async_callbacks_are_awaited(self) -> None:
        done = []

        async def callback():
            await asyncio.sleep(0)
            done.append(1)

        scheduler = Scheduler(interval_ms=10)
        scheduler.start(callback)
        await asyncio.sleep(0.1)
        await scheduler.stop()
        assert done

    async def test_can_restart(self) -> None:
        scheduler = Scheduler(interval_ms=10)
        scheduler.start(lambda: None)
        await scheduler.stop()
        assert scheduler.start(lambda: None)
        await scheduler.stop()


async def _work(results, value):
    await asyncio.sleep(0)
    results.append(value)


async def _fail():
    raise RuntimeError("collaborator exploded")


class TestBackgroundDispatcher:
    def test_without_loop_work_is_dropped(self) -> None:
        results = []
        dispatcher = BackgroundDispatcher()
        assert not dispatcher.submit(_work(results, 1))
        assert dispatcher.pending == 0
        assert results == []

    async def test_runs_and_drains(self) -> None:
        results = []
        dispatcher = BackgroundDispatcher()
        assert dispatcher.submit(_work(results, 1))
        assert dispatcher.submit(_work(results, 2))
        await dispatcher.drain()
        assert sorted(results) == [1, 2]
        assert dispatcher.pending == 0

    async def test_failures_are_absorbed(self) -> None:
        dispatcher = BackgroundDispatcher()
        dispatcher.submit(_fail(), name="doomed")
        await dispatcher.drain()
        assert dispatcher.pending == 0
