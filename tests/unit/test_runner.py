# ============================================================================
# tests/unit/test_runner.py
# PolicyRunner: schedule execution, fault tolerance and shutdown
# ============================================================================

import asyncio
from datetime import timedelta

import pytest

from autoprofiler.errors import ErrorCode
from autoprofiler.observer.bus import EventBus
from autoprofiler.observer.events import EventType
from autoprofiler.scheduler import (
    LimitedExpirationPolicy,
    OneTimeSchedulingPolicy,
    PolicyRunner,
    ProfilerAction,
    ScheduleEntry,
    SchedulingPolicy,
    Tunables,
)

TICK = timedelta(milliseconds=10)
FAST = Tunables(profiling_duration=TICK, polling_interval=TICK, refresh_interval=TICK)


class RecordingCoordinator:
    def __init__(self, start_result=True, start_error=None):
        self.start_result = start_result
        self.start_error = start_error
        self.starts = 0
        self.stops = 0

    async def start_profiling(self, policy):
        self.starts += 1
        if self.start_error:
            raise self.start_error
        return self.start_result

    async def stop_profiling(self, policy):
        self.stops += 1
        return True


class ScriptedPolicy(SchedulingPolicy):
    """Hands out prepared schedules; an exception in the script is raised instead."""

    source = "ScriptedPolicy"

    def __init__(self, script=(), tunables=FAST, expiration_policy=None, refresh=()):
        super().__init__(tunables, expiration_policy=expiration_policy)
        self._script = list(script)
        self._refresh = list(refresh)
        self.evaluations = 0

    async def build_schedule(self):
        self.evaluations += 1
        item = self._script.pop(0) if self._script else self.standby_schedule()
        if isinstance(item, Exception):
            raise item
        return item

    def needs_refresh(self):
        item = self._refresh.pop(0) if self._refresh else False
        if isinstance(item, Exception):
            raise item
        return item


async def run_for(runner, seconds=0.1):
    cancel = asyncio.Event()
    task = asyncio.create_task(runner.run(cancel))
    await asyncio.sleep(seconds)
    cancel.set()
    await asyncio.wait_for(task, timeout=1.0)


def collecting_bus():
    bus = EventBus()
    events = []
    bus.subscribe("*", events.append)
    return bus, events


def types(events):
    return [e.type for e in events]


@pytest.mark.asyncio
async def test_one_time_policy_runs_to_expiry():
    bus, events = collecting_bus()
    coordinator = RecordingCoordinator()
    policy = OneTimeSchedulingPolicy(duration=TICK, polling_interval=TICK)

    await asyncio.wait_for(PolicyRunner(policy, coordinator, bus=bus).run(asyncio.Event()), timeout=1.0)

    assert coordinator.starts == 1
    # the STANDBY entry plus the release on exit
    assert coordinator.stops == 2
    assert EventType.POLICY_EXPIRED in types(events)


@pytest.mark.asyncio
async def test_evaluation_errors_are_retried():
    coordinator = RecordingCoordinator()
    policy = ScriptedPolicy([
        RuntimeError("signal source down"),
        RuntimeError("still down"),
        [ScheduleEntry(TICK, ProfilerAction.START_PROFILING_SESSION)],
    ])

    await run_for(PolicyRunner(policy, coordinator))

    assert policy.evaluations >= 3
    assert coordinator.starts == 1


@pytest.mark.asyncio
async def test_action_errors_are_reported_and_survived():
    bus, events = collecting_bus()
    coordinator = RecordingCoordinator(start_error=RuntimeError("trace session busy"))
    policy = ScriptedPolicy([
        [ScheduleEntry(TICK, ProfilerAction.START_PROFILING_SESSION)],
    ])

    await run_for(PolicyRunner(policy, coordinator, bus=bus))

    failures = [e for e in events if e.type == EventType.CAPTURE_FAILED]
    assert len(failures) == 1
    assert failures[0].payload["code"] == ErrorCode.CAPTURE_START_FAILED.value
    assert policy.evaluations > 1


@pytest.mark.asyncio
async def test_refused_start_does_not_count_towards_expiry():
    coordinator = RecordingCoordinator(start_result=False)
    expiration = LimitedExpirationPolicy(1)
    policy = ScriptedPolicy(
        [[ScheduleEntry(TICK, ProfilerAction.START_PROFILING_SESSION)]],
        expiration_policy=expiration,
    )

    await run_for(PolicyRunner(policy, coordinator))

    assert coordinator.starts == 1
    assert expiration.expired is False


@pytest.mark.asyncio
async def test_disabled_policy_idles():
    coordinator = RecordingCoordinator()
    policy = ScriptedPolicy(
        [[ScheduleEntry(TICK, ProfilerAction.START_PROFILING_SESSION)]],
        tunables=FAST.with_changes(policy_enabled=False),
    )

    await run_for(PolicyRunner(policy, coordinator))

    assert policy.evaluations == 0
    assert coordinator.starts == 0
    # released on exit only
    assert coordinator.stops == 1


@pytest.mark.asyncio
async def test_empty_schedule_does_not_spin():
    policy = ScriptedPolicy([[] for _ in range(1000)])

    await run_for(PolicyRunner(policy, RecordingCoordinator()), seconds=0.05)

    assert policy.evaluations < 50


@pytest.mark.asyncio
async def test_cancel_interrupts_a_long_entry():
    coordinator = RecordingCoordinator()
    policy = ScriptedPolicy([
        [ScheduleEntry(timedelta(hours=1), ProfilerAction.START_PROFILING_SESSION)],
    ])

    await run_for(PolicyRunner(policy, coordinator), seconds=0.05)

    assert coordinator.starts == 1
    assert coordinator.stops == 1


@pytest.mark.asyncio
async def test_refresh_events():
    bus, events = collecting_bus()
    policy = ScriptedPolicy(refresh=[True, False])

    await run_for(PolicyRunner(policy, RecordingCoordinator(), bus=bus))

    assert types(events).count(EventType.POLICY_REFRESHED) == 1


@pytest.mark.asyncio
async def test_refresh_errors_keep_the_runner_alive(caplog):
    bus, events = collecting_bus()
    policy = ScriptedPolicy(refresh=[ValueError("bad contract"), True])

    with caplog.at_level("WARNING"):
        await run_for(PolicyRunner(policy, RecordingCoordinator(), bus=bus))

    assert ErrorCode.CONFIG_STALE.value in caplog.text
    assert EventType.POLICY_REFRESHED in types(events)


@pytest.mark.asyncio
async def test_schedule_evaluated_event_lists_entries():
    bus, events = collecting_bus()
    policy = ScriptedPolicy([[ScheduleEntry(TICK, ProfilerAction.STANDBY)]])

    await run_for(PolicyRunner(policy, RecordingCoordinator(), bus=bus), seconds=0.03)

    evaluated = [e for e in events if e.type == EventType.SCHEDULE_EVALUATED]
    assert evaluated[0].payload == {"entries": [{"duration": 0.01, "action": "standby"}]}
    assert evaluated[0].source == "ScriptedPolicy"
