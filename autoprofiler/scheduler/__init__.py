"""Scheduling policy engine."""
#
# KEY MODULES:
# - **actions.py**: ProfilerAction and ScheduleEntry
# - **expiration.py**: when a policy stops for good
# - **tunables.py**: copy-on-write tunables
# - **policy.py / policies.py**: the scheduling strategies
# - **runner.py**: executes one policy's schedule and refresh ticks
# - **orchestrator.py**: runs all policies against one capture provider
#
from autoprofiler.utils.delay import DelaySource

from .actions import ProfilerAction, ScheduleEntry
from .expiration import (
    ExpirationPolicy,
    ProcessExpirationPolicy,
    LimitedExpirationPolicy,
    TimedExpirationPolicy,
)
from .tunables import Tunables, TunablesHolder
from .policy import SchedulingPolicy
from .policies import (
    OneTimeSchedulingPolicy,
    MemoryMonitoringSchedulingPolicy,
    CpuMonitoringSchedulingPolicy,
    RandomSchedulingPolicy,
    OnDemandSchedulingPolicy,
    POLICY_NAMES,
    create_policy,
)
from .runner import PolicyRunner
from .orchestrator import Orchestrator

__all__ = [
    "DelaySource",
    "ProfilerAction",
    "ScheduleEntry",
    "ExpirationPolicy",
    "ProcessExpirationPolicy",
    "LimitedExpirationPolicy",
    "TimedExpirationPolicy",
    "Tunables",
    "TunablesHolder",
    "SchedulingPolicy",
    "OneTimeSchedulingPolicy",
    "MemoryMonitoringSchedulingPolicy",
    "CpuMonitoringSchedulingPolicy",
    "RandomSchedulingPolicy",
    "OnDemandSchedulingPolicy",
    "POLICY_NAMES",
    "create_policy",
    "PolicyRunner",
    "Orchestrator",
]
