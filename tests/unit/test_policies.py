# ============================================================================
# tests/unit/test_policies.py
# Schedules produced by each scheduling policy
# ============================================================================

import random
from datetime import datetime, timedelta, timezone

import pytest

from autoprofiler.base.config import ProfilerConfig
from autoprofiler.contracts.settings import (
    CpuTriggerSettings,
    MemoryTriggerSettings,
    OnDemandSettings,
    SamplingOptions,
    SettingsContract,
)
from autoprofiler.errors import ErrorCode, ProfilerError
from autoprofiler.monitoring.resources import StaticResourceUsageSource
from autoprofiler.scheduler import (
    CpuMonitoringSchedulingPolicy,
    LimitedExpirationPolicy,
    MemoryMonitoringSchedulingPolicy,
    OnDemandSchedulingPolicy,
    OneTimeSchedulingPolicy,
    ProfilerAction,
    RandomSchedulingPolicy,
    ScheduleEntry,
    create_policy,
)
from autoprofiler.settings.profiler_settings import ProfilerSettings
from autoprofiler.settings.sources import StaticSettingsSource

START = ProfilerAction.START_PROFILING_SESSION
STANDBY = ProfilerAction.STANDBY
POLL = timedelta(seconds=5)
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class MutableSource:
    def __init__(self, contract):
        self.contract = contract

    def fetch(self):
        return self.contract


class BrokenResources:
    def get_average_cpu_usage(self):
        raise OSError("no /proc")

    def get_average_memory_usage(self):
        raise OSError("no /proc")


def memory_settings(threshold=80.0, duration=30, cooldown=600, enabled=True):
    return ProfilerSettings(SettingsContract(
        memory_trigger=MemoryTriggerSettings(
            enabled=enabled,
            memory_threshold=threshold,
            memory_trigger_profiling_duration_in_seconds=duration,
            memory_trigger_cooldown_in_seconds=cooldown,
        ),
    ))


# ---------------------------------------------------------------------------
# Resource threshold policies
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_memory_above_threshold_profiles():
    policy = MemoryMonitoringSchedulingPolicy(memory_settings(), StaticResourceUsageSource(memory=91.0), POLL)

    schedule = await policy.get_schedule()

    assert schedule == [
        ScheduleEntry(timedelta(seconds=30), START),
        ScheduleEntry(timedelta(seconds=600), STANDBY),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("usage", [10.0, 80.0])
async def test_memory_at_or_below_threshold_stands_by(usage):
    policy = MemoryMonitoringSchedulingPolicy(memory_settings(), StaticResourceUsageSource(memory=usage), POLL)
    assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_cpu_policy_reads_cpu_signal():
    settings = ProfilerSettings(SettingsContract(cpu_trigger=CpuTriggerSettings(cpu_threshold=50)))
    resources = StaticResourceUsageSource(cpu=75.0, memory=0.0)
    policy = CpuMonitoringSchedulingPolicy(settings, resources, POLL)

    schedule = await policy.get_schedule()
    assert schedule[0].action == START

    resources.cpu = 20.0
    assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_unreadable_signal_counts_as_below_threshold(caplog):
    policy = MemoryMonitoringSchedulingPolicy(memory_settings(threshold=0), BrokenResources(), POLL)

    with caplog.at_level("WARNING"):
        schedule = await policy.get_schedule()

    assert schedule == [ScheduleEntry(POLL, STANDBY)]
    assert ErrorCode.RESOURCE_SIGNAL_UNAVAILABLE.value in caplog.text


def test_threshold_tunables_follow_settings():
    source = MutableSource(SettingsContract())
    settings = ProfilerSettings(SettingsContract(), source=source)
    policy = MemoryMonitoringSchedulingPolicy(settings, StaticResourceUsageSource(), POLL)

    assert policy.needs_refresh() is False

    source.contract = SettingsContract(memory_trigger=MemoryTriggerSettings(memory_threshold=60, enabled=False))
    settings.refresh()

    assert policy.needs_refresh() is True
    assert policy.tunables.threshold == 60
    assert policy.tunables.policy_enabled is False
    assert policy.tunables.enabled is False
    assert policy.needs_refresh() is False


def test_refresh_keeps_polling_interval():
    source = MutableSource(SettingsContract())
    settings = ProfilerSettings(SettingsContract(), source=source)
    policy = MemoryMonitoringSchedulingPolicy(settings, StaticResourceUsageSource(), timedelta(seconds=2))

    source.contract = SettingsContract(enabled=False)
    settings.refresh()

    assert policy.needs_refresh() is True
    assert policy.tunables.polling_interval == timedelta(seconds=2)
    assert policy.tunables.profiler_enabled is False


# ---------------------------------------------------------------------------
# One-time policy
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_one_time_policy_starts_only_once():
    policy = OneTimeSchedulingPolicy(duration=timedelta(seconds=10), polling_interval=POLL)

    first = await policy.get_schedule()
    assert first == [
        ScheduleEntry(timedelta(seconds=10), START),
        ScheduleEntry(timedelta(seconds=10), STANDBY),
    ]

    for _ in range(3):
        assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_one_time_policy_expires_after_one_start():
    policy = OneTimeSchedulingPolicy()
    assert policy.expiration_policy.expired is False

    policy.expiration_policy.record_start()

    assert policy.expiration_policy.expired is True
    assert (await policy.get_schedule())[0].action == STANDBY


def test_one_time_policy_has_no_refresh():
    policy = OneTimeSchedulingPolicy()
    assert policy.needs_refresh() is False
    assert policy.tunables.profiling_cooldown == timedelta(hours=4)


# ---------------------------------------------------------------------------
# Random policy
# ---------------------------------------------------------------------------

def random_settings(rate, duration=30, enabled=True):
    return ProfilerSettings(SettingsContract(
        sampling=SamplingOptions(enabled=enabled, sampling_rate=rate, profiling_duration_in_seconds=duration),
    ))


@pytest.mark.asyncio
async def test_random_policy_with_zero_overhead_stands_by():
    policy = RandomSchedulingPolicy(random_settings(0.0), POLL, rng=random.Random(1))
    assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_random_policy_schedules_the_target_share():
    # 12h * 1% / 30s = 14.4 -> 14 sessions
    policy = RandomSchedulingPolicy(random_settings(0.01), POLL, rng=random.Random(7))

    schedule = await policy.get_schedule()

    starts = [e for e in schedule if e.action == START]
    assert len(starts) == 14
    assert all(e.duration == timedelta(seconds=30) for e in starts)
    total = sum((e.duration for e in schedule), timedelta(0))
    assert total == RandomSchedulingPolicy.SCHEDULE_WINDOW


@pytest.mark.asyncio
async def test_random_policy_merges_consecutive_standby():
    policy = RandomSchedulingPolicy(random_settings(0.05), POLL, rng=random.Random(3))

    schedule = await policy.get_schedule()

    for previous, current in zip(schedule, schedule[1:]):
        assert not (previous.action == STANDBY and current.action == STANDBY)


@pytest.mark.asyncio
async def test_random_policy_is_reproducible_with_a_seed():
    first = await RandomSchedulingPolicy(random_settings(0.02), POLL, rng=random.Random(99)).get_schedule()
    second = await RandomSchedulingPolicy(random_settings(0.02), POLL, rng=random.Random(99)).get_schedule()
    assert first == second


@pytest.mark.asyncio
async def test_random_policy_full_overhead_profiles_every_segment():
    policy = RandomSchedulingPolicy(random_settings(1.0, duration=3600), POLL, rng=random.Random(0))

    schedule = await policy.get_schedule()

    assert [e.action for e in schedule] == [START, STANDBY] * 12


@pytest.mark.asyncio
async def test_random_policy_duration_longer_than_window_stands_by():
    policy = RandomSchedulingPolicy(random_settings(1.0, duration=100_000), POLL, rng=random.Random(0))
    assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_random_policy_without_segments_fails():
    policy = RandomSchedulingPolicy(random_settings(1.0, duration=100_000), POLL, rng=random.Random(0))
    policy._holder.swap(policy.tunables.with_changes(overhead=2.0))

    with pytest.raises(ProfilerError) as exc_info:
        await policy.get_schedule()
    assert exc_info.value.code == ErrorCode.SCHEDULE_EVALUATION_FAILED


def test_random_policy_tunables_come_from_sampling_options():
    policy = RandomSchedulingPolicy(random_settings(0.2, duration=45, enabled=False), POLL)
    assert policy.tunables.overhead == 0.2
    assert policy.tunables.profiling_duration == timedelta(seconds=45)
    assert policy.tunables.enabled is False


# ---------------------------------------------------------------------------
# On-demand policy
# ---------------------------------------------------------------------------

def on_demand(plan="plan-1", duration=60, expiration=None):
    return SettingsContract(
        collection_plan=plan,
        on_demand=OnDemandSettings(profiling_duration_in_seconds=duration, expiration=expiration),
    )


def on_demand_policy(contract):
    source = MutableSource(contract)
    settings = ProfilerSettings(contract, source=source)
    settings.refresh()
    policy = OnDemandSchedulingPolicy(
        settings,
        duration=timedelta(seconds=30),
        polling_interval=timedelta(milliseconds=10),
        clock=lambda: NOW,
    )
    return policy, source, settings


@pytest.mark.asyncio
async def test_on_demand_new_plan_profiles_once():
    policy, _, _ = on_demand_policy(on_demand(expiration=NOW + timedelta(hours=1)))

    assert await policy.get_schedule() == [
        ScheduleEntry(timedelta(seconds=60), START),
        ScheduleEntry(timedelta(0), STANDBY),
    ]
    assert (await policy.get_schedule())[0].action == STANDBY


@pytest.mark.asyncio
async def test_on_demand_next_plan_profiles_again():
    policy, source, settings = on_demand_policy(on_demand("plan-1"))
    await policy.get_schedule()

    source.contract = on_demand("plan-2", duration=90)
    settings.refresh()

    assert (await policy.get_schedule())[0] == ScheduleEntry(timedelta(seconds=90), START)


@pytest.mark.asyncio
async def test_on_demand_expired_plan_is_ignored():
    policy, _, _ = on_demand_policy(on_demand(expiration=NOW - timedelta(seconds=1)))
    assert (await policy.get_schedule())[0].action == STANDBY


@pytest.mark.asyncio
async def test_on_demand_naive_expiration_is_utc():
    naive = (NOW + timedelta(minutes=5)).replace(tzinfo=None)
    policy, _, _ = on_demand_policy(on_demand(expiration=naive))
    assert (await policy.get_schedule())[0].action == START


@pytest.mark.asyncio
@pytest.mark.parametrize("requested, expected", [(0, 30), (360, 360), (361, 120), (-5, 30)])
async def test_on_demand_duration_bounds(requested, expected):
    policy, _, _ = on_demand_policy(on_demand(duration=requested))
    assert (await policy.get_schedule())[0].duration == timedelta(seconds=expected)


@pytest.mark.asyncio
async def test_on_demand_without_plan_stands_by():
    policy, _, _ = on_demand_policy(SettingsContract())
    assert await policy.get_schedule() == [ScheduleEntry(timedelta(milliseconds=10), STANDBY)]


# ---------------------------------------------------------------------------
# Exhausted expiration
# ---------------------------------------------------------------------------

def exhausted():
    expiration = LimitedExpirationPolicy(1)
    expiration.record_start()
    return expiration


def policy_that_would_start(name):
    if name == "memory":
        return MemoryMonitoringSchedulingPolicy(
            memory_settings(), StaticResourceUsageSource(memory=99.0), POLL, expiration_policy=exhausted(),
        )
    if name == "cpu":
        settings = ProfilerSettings(SettingsContract(cpu_trigger=CpuTriggerSettings(cpu_threshold=50)))
        return CpuMonitoringSchedulingPolicy(
            settings, StaticResourceUsageSource(cpu=99.0), POLL, expiration_policy=exhausted(),
        )
    if name == "random":
        return RandomSchedulingPolicy(
            random_settings(1.0, duration=3600), POLL, rng=random.Random(0), expiration_policy=exhausted(),
        )
    if name == "ondemand":
        return OnDemandSchedulingPolicy(
            ProfilerSettings(on_demand()), polling_interval=POLL, clock=lambda: NOW,
            expiration_policy=exhausted(),
        )
    return OneTimeSchedulingPolicy(polling_interval=POLL, expiration_policy=exhausted())


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["memory", "cpu", "random", "ondemand", "once"])
async def test_expired_policy_never_starts(name):
    policy = policy_that_would_start(name)

    for _ in range(2):
        assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


@pytest.mark.asyncio
async def test_policy_profiles_until_its_expiration_is_used_up():
    expiration = LimitedExpirationPolicy(1)
    policy = MemoryMonitoringSchedulingPolicy(
        memory_settings(), StaticResourceUsageSource(memory=99.0), POLL, expiration_policy=expiration,
    )

    assert (await policy.get_schedule())[0].action == START
    expiration.record_start()
    assert await policy.get_schedule() == [ScheduleEntry(POLL, STANDBY)]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_create_policy_by_name():
    config = ProfilerConfig()
    settings = ProfilerSettings(SettingsContract.from_config(config), source=StaticSettingsSource())
    resources = StaticResourceUsageSource()

    assert isinstance(create_policy("memory", config, settings, resources), MemoryMonitoringSchedulingPolicy)
    assert isinstance(create_policy("cpu", config, settings, resources), CpuMonitoringSchedulingPolicy)
    assert isinstance(create_policy("once", config, settings, resources), OneTimeSchedulingPolicy)
    assert isinstance(create_policy("random", config, settings, resources), RandomSchedulingPolicy)
    assert isinstance(create_policy("ondemand", config, settings, resources), OnDemandSchedulingPolicy)


def test_create_policy_unknown_name():
    config = ProfilerConfig()
    settings = ProfilerSettings(SettingsContract())

    with pytest.raises(ProfilerError) as exc_info:
        create_policy("weekly", config, settings, StaticResourceUsageSource())
    assert exc_info.value.code == ErrorCode.SCHEDULE_POLICY_NOT_REGISTERED
