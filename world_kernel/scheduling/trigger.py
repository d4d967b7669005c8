"""
Tick triggers — decide *when* `execute_tick()` runs.

The orchestrator only knows `schedule(callback, interval_seconds)` and the
returned handle's `cancel()`. Cancelling stops the next call; a tick that is
already running always finishes.

  IntervalTrigger  asyncio heartbeat, fixed interval
  CronTrigger      asyncio heartbeat on a cron expression (croniter)
  ManualTrigger    pull-based, ticks only when fire() is awaited
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Protocol

from croniter import croniter

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class TriggerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


class TickTrigger(Protocol):
    """Protocol for periodic tick scheduling — pluggable backend."""

    def schedule(
        self, callback: TickCallback, interval_seconds: float
    ) -> TriggerHandle: ...


def interval_to_cron(minutes: int) -> str:
    """Cron expression for a tick every N minutes (hourly for 60+)."""
    if minutes < 1:
        raise ValueError("Tick interval must be at least one minute")
    if minutes < 60:
        return f"*/{minutes} * * * *"
    return "0 * * * *"


class _HeartbeatHandle:
    """Handle around an asyncio task that waits on a stop event between ticks."""

    def __init__(self):
        self._stop = asyncio.Event()
        self.task: Optional[asyncio.Task] = None

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop

    @property
    def active(self) -> bool:
        return self.task is not None and not self.task.done() and not self._stop.is_set()

    def cancel(self) -> None:
        """Stop before the next tick. Idempotent."""
        self._stop.set()


async def _heartbeat(
    callback: TickCallback,
    stop_event: asyncio.Event,
    next_delay: Callable[[], float],
) -> None:
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=next_delay())
            break
        except asyncio.TimeoutError:
            pass
        try:
            await callback()
        except Exception:
            logger.exception("Scheduled tick execution failed")


class IntervalTrigger:
    """Runs the callback every `interval_seconds`, awaiting each tick in turn."""

    def schedule(
        self, callback: TickCallback, interval_seconds: float
    ) -> _HeartbeatHandle:
        handle = _HeartbeatHandle()
        handle.task = asyncio.get_running_loop().create_task(
            _heartbeat(callback, handle.stop_event, lambda: interval_seconds)
        )
        return handle


class CronTrigger:
    """
    Runs the callback on a cron schedule. When no expression is given, the
    interval passed to schedule() is converted with interval_to_cron().
    """

    def __init__(self, expression: Optional[str] = None):
        if expression is not None and not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression}")
        self.expression = expression

    def schedule(
        self, callback: TickCallback, interval_seconds: float
    ) -> _HeartbeatHandle:
        expression = self.expression or interval_to_cron(
            max(1, int(interval_seconds // 60))
        )
        logger.info("Scheduling ticks with cron expression %s", expression)

        def next_delay() -> float:
            now = datetime.now()
            next_fire = croniter(expression, now).get_next(datetime)
            return max(0.0, (next_fire - now).total_seconds())

        handle = _HeartbeatHandle()
        handle.task = asyncio.get_running_loop().create_task(
            _heartbeat(callback, handle.stop_event, next_delay)
        )
        return handle


class _ManualHandle:
    def __init__(self, callback: TickCallback, interval_seconds: float):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualTrigger:
    """Pull-based trigger: nothing runs until fire() is awaited."""

    def __init__(self):
        self.handles: List[_ManualHandle] = []

    @property
    def intervals(self) -> List[float]:
        """Requested intervals of the schedules still held."""
        return [h.interval_seconds for h in self.handles]

    def schedule(
        self, callback: TickCallback, interval_seconds: float
    ) -> _ManualHandle:
        handle = _ManualHandle(callback, interval_seconds)
        self.handles.append(handle)
        return handle

    async def fire(self) -> int:
        """Run one tick for every active schedule. Returns how many ran."""
        self._prune()
        fired = 0
        for handle in list(self.handles):
            if handle.active:
                await handle.callback()
                fired += 1
        self._prune()
        return fired

    def _prune(self) -> None:
        self.handles = [h for h in self.handles if h.active]
