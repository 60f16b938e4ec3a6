from __future__ import annotations

import asyncio

from core.config import UserSettings, settings_from_dict
from core.scheduler import (
    RETRY_BACKOFF_SECONDS,
    SETTINGS_POLL_SECONDS,
    PeriodicRegrouper,
    SchedulerAction,
    SchedulerMode,
    SchedulerState,
    complete,
    tick,
)


def _settings(*, ai_enabled: bool = True, auto_reschedule: bool = True, interval: int = 60) -> UserSettings:
    return settings_from_dict(
        {"aiEnabled": ai_enabled, "autoReschedule": auto_reschedule, "aiGroupingInterval": interval}
    )


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_tick_waits_until_due() -> None:
    state = SchedulerState(next_fire_at=500.0, mode=SchedulerMode.WAITING)

    new_state, action = tick(state, 100.0, _settings())

    assert action is SchedulerAction.WAIT
    assert new_state == state


def test_tick_polls_settings_when_disabled() -> None:
    for settings in (_settings(ai_enabled=False), _settings(auto_reschedule=False)):
        state, action = tick(SchedulerState(), 100.0, settings)

        assert action is SchedulerAction.POLL
        assert state.mode is SchedulerMode.IDLE
        assert state.next_fire_at == 100.0 + SETTINGS_POLL_SECONDS


def test_tick_runs_regroup_when_due_and_enabled() -> None:
    state, action = tick(SchedulerState(), 100.0, _settings())

    assert action is SchedulerAction.REGROUP
    assert state.mode is SchedulerMode.RUNNING

    # A run in progress is never started twice.
    _, again = tick(state, 200.0, _settings())
    assert again is SchedulerAction.WAIT


def test_complete_uses_interval_or_backoff() -> None:
    running = SchedulerState(mode=SchedulerMode.RUNNING)

    ok = complete(running, 100.0, _settings(interval=15), succeeded=True)
    failed = complete(running, 100.0, _settings(interval=15), succeeded=False)

    assert ok == SchedulerState(100.0 + 15 * 60, SchedulerMode.WAITING)
    assert failed == SchedulerState(100.0 + RETRY_BACKOFF_SECONDS, SchedulerMode.WAITING)


def test_interval_has_a_five_minute_floor() -> None:
    assert _settings(interval=1).ai_grouping_interval == 5


def test_regrouper_retries_after_failure_then_resumes_interval() -> None:
    clock = FakeClock()
    outcomes = [False, True]
    calls: list[float] = []

    async def regroup() -> bool:
        calls.append(clock.now)
        return outcomes.pop(0)

    regrouper = PeriodicRegrouper(lambda: _settings(interval=30), regroup, clock)

    assert asyncio.run(regrouper.step()) is SchedulerAction.REGROUP
    assert regrouper.state.next_fire_at == 1000.0 + RETRY_BACKOFF_SECONDS

    clock.now += 60
    assert asyncio.run(regrouper.step()) is SchedulerAction.WAIT

    clock.now = regrouper.state.next_fire_at
    assert asyncio.run(regrouper.step()) is SchedulerAction.REGROUP
    assert regrouper.state.next_fire_at == clock.now + 30 * 60
    assert len(calls) == 2


def test_regrouper_survives_exceptions_and_settings_errors() -> None:
    clock = FakeClock()

    async def regroup() -> bool:
        raise RuntimeError("store offline")

    regrouper = PeriodicRegrouper(_settings, regroup, clock)
    asyncio.run(regrouper.step())
    assert regrouper.state == SchedulerState(1000.0 + RETRY_BACKOFF_SECONDS, SchedulerMode.WAITING)

    def broken_settings() -> UserSettings:
        raise OSError("config unreadable")

    clock.now = 5000.0
    failing = PeriodicRegrouper(broken_settings, regroup, clock)
    assert asyncio.run(failing.step()) is SchedulerAction.WAIT
    assert failing.state.next_fire_at == 5000.0 + RETRY_BACKOFF_SECONDS


def test_regrouper_only_polls_while_disabled() -> None:
    clock = FakeClock()
    calls: list[int] = []

    async def regroup() -> bool:
        calls.append(1)
        return True

    regrouper = PeriodicRegrouper(lambda: _settings(ai_enabled=False), regroup, clock)

    assert asyncio.run(regrouper.step()) is SchedulerAction.POLL
    assert calls == []
    assert regrouper.state.next_fire_at == 1000.0 + SETTINGS_POLL_SECONDS
