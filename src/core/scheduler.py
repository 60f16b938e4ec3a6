"""Scheduling primitives: the periodic regroup state machine and a debouncer.

Both are written against injected clocks/timers so tests can drive them
without sleeping.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from core.config import UserSettings

LOGGER = logging.getLogger(__name__)

SETTINGS_POLL_SECONDS = 60.0
RETRY_BACKOFF_SECONDS = 5 * 60.0


class SchedulerMode(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"


class SchedulerAction(str, Enum):
    WAIT = "wait"
    POLL = "poll"
    REGROUP = "regroup"


@dataclass(frozen=True)
class SchedulerState:
    next_fire_at: float = 0.0
    mode: SchedulerMode = SchedulerMode.IDLE


def tick(
    state: SchedulerState, now: float, settings: UserSettings
) -> Tuple[SchedulerState, SchedulerAction]:
    """Decide what the periodic task should do at ``now``.

    - Not due yet: wait.
    - Due but AI grouping or auto-reschedule is off: poll settings again in
      one minute without running the pipeline.
    - Due and enabled: run a full regroup.
    """

    if state.mode is SchedulerMode.RUNNING or now < state.next_fire_at:
        return state, SchedulerAction.WAIT

    if not settings.periodic_regroup_enabled:
        return SchedulerState(now + SETTINGS_POLL_SECONDS, SchedulerMode.IDLE), SchedulerAction.POLL

    return replace(state, mode=SchedulerMode.RUNNING), SchedulerAction.REGROUP


def complete(
    state: SchedulerState, now: float, settings: UserSettings, succeeded: bool
) -> SchedulerState:
    """Schedule the next run after a regroup finished."""

    if succeeded:
        delay = settings.ai_grouping_interval * 60.0
    else:
        delay = RETRY_BACKOFF_SECONDS
    return SchedulerState(now + delay, SchedulerMode.WAITING)


CallLater = Callable[[float, Callable[[], Any]], Any]


class Debouncer:
    """Trailing-edge debounce: only the last trigger in a window runs.

    ``call_later(delay, callback)`` must return a handle with ``cancel()``;
    it defaults to the running event loop's ``call_later``.
    """

    def __init__(self, window_seconds: float, call_later: Optional[CallLater] = None) -> None:
        self.window_seconds = window_seconds
        self._call_later = call_later
        self._pending: Optional[Any] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> None:
        """Replace any pending call with ``fn(*args)`` after the window."""

        self.cancel()
        call_later = self._call_later or asyncio.get_running_loop().call_later
        self._pending = call_later(self.window_seconds, lambda: self._fire(fn, args))

    def cancel(self) -> None:
        handle = self._pending
        self._pending = None
        if handle is not None:
            handle.cancel()

    def _fire(self, fn: Callable[..., Awaitable[Any]], args: tuple) -> None:
        self._pending = None
        task = asyncio.ensure_future(fn(*args))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("Debounced call failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for debounced calls that already fired."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class PeriodicRegrouper:
    """Drives ``tick``/``complete`` with real time and sleeps between ticks."""

    def __init__(
        self,
        load_settings: Callable[[], UserSettings],
        regroup: Callable[[], Awaitable[bool]],
        clock: Callable[[], float],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._load_settings = load_settings
        self._regroup = regroup
        self._clock = clock
        self._sleep = sleep
        self.state = SchedulerState()

    async def step(self) -> SchedulerAction:
        """Run one scheduling decision and its action."""

        try:
            settings = self._load_settings()
        except Exception:
            LOGGER.exception("Failed to load settings; retrying later")
            self.state = SchedulerState(self._clock() + RETRY_BACKOFF_SECONDS, SchedulerMode.WAITING)
            return SchedulerAction.WAIT

        self.state, action = tick(self.state, self._clock(), settings)
        if action is SchedulerAction.REGROUP:
            LOGGER.info("Running scheduled regroup")
            try:
                succeeded = await self._regroup()
            except Exception:
                LOGGER.exception("Scheduled regroup failed")
                succeeded = False
            self.state = complete(self.state, self._clock(), settings, succeeded)
            if not succeeded:
                LOGGER.warning("Scheduled regroup failed; retrying in %s seconds", RETRY_BACKOFF_SECONDS)
        return action

    async def run_forever(self) -> None:
        while True:
            await self.step()
            await self._sleep(max(0.0, self.state.next_fire_at - self._clock()))
