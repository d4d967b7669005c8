"""Tests for tick triggers."""

import asyncio

import pytest

from world_kernel.scheduling.trigger import (
    CronTrigger,
    IntervalTrigger,
    ManualTrigger,
    interval_to_cron,
)


class TestIntervalToCron:
    def test_minutes(self):
        assert interval_to_cron(5) == "*/5 * * * *"

    def test_hourly_for_long_intervals(self):
        assert interval_to_cron(60) == "0 * * * *"
        assert interval_to_cron(240) == "0 * * * *"

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            interval_to_cron(0)


class TestManualTrigger:
    def test_fire_runs_scheduled_callbacks(self):
        trigger = ManualTrigger()
        calls = []

        async def tick():
            calls.append(1)

        handle = trigger.schedule(tick, 300)
        assert handle.active
        assert trigger.intervals == [300]
        assert asyncio.run(trigger.fire()) == 1
        assert calls == [1]

    def test_cancelled_handle_does_not_fire(self):
        trigger = ManualTrigger()
        calls = []

        async def tick():
            calls.append(1)

        handle = trigger.schedule(tick, 300)
        handle.cancel()
        handle.cancel()
        assert not handle.active
        assert asyncio.run(trigger.fire()) == 0
        assert calls == []

    def test_cancelled_handles_are_dropped(self):
        trigger = ManualTrigger()

        async def tick():
            pass

        stale = trigger.schedule(tick, 300)
        trigger.schedule(tick, 60)
        stale.cancel()
        assert asyncio.run(trigger.fire()) == 1
        assert len(trigger.handles) == 1
        assert trigger.intervals == [60]

    def test_handle_cancelled_by_its_own_tick_is_dropped(self):
        trigger = ManualTrigger()

        async def tick():
            handle.cancel()

        handle = trigger.schedule(tick, 300)
        assert asyncio.run(trigger.fire()) == 1
        assert trigger.handles == []


class TestIntervalTrigger:
    def test_ticks_until_cancelled(self):
        calls = []

        async def tick():
            calls.append(1)

        async def run():
            handle = IntervalTrigger().schedule(tick, 0.01)
            await asyncio.sleep(0.1)
            handle.cancel()
            await handle.task
            return handle

        handle = asyncio.run(run())
        assert len(calls) >= 1
        assert not handle.active

    def test_failing_tick_does_not_stop_heartbeat(self):
        calls = []

        async def tick():
            calls.append(1)
            raise RuntimeError("tick failed")

        async def run():
            handle = IntervalTrigger().schedule(tick, 0.01)
            await asyncio.sleep(0.1)
            handle.cancel()
            await handle.task

        asyncio.run(run())
        assert len(calls) >= 2

    def test_cancel_before_first_tick(self):
        calls = []

        async def tick():
            calls.append(1)

        async def run():
            handle = IntervalTrigger().schedule(tick, 60)
            handle.cancel()
            await handle.task

        asyncio.run(run())
        assert calls == []


class TestCronTrigger:
    def test_invalid_expression(self):
        with pytest.raises(ValueError):
            CronTrigger("not a cron")

    def test_schedules_and_cancels(self):
        calls = []

        async def tick():
            calls.append(1)

        async def run():
            handle = CronTrigger("*/5 * * * *").schedule(tick, 300)
            assert handle.active
            handle.cancel()
            await handle.task
            return handle

        handle = asyncio.run(run())
        assert calls == []
        assert not handle.active
