"""
autoprofiler/scheduler/policy.py

Base class for scheduling policies.

A policy is a strategy: it turns the current signals into an ordered list
of ScheduleEntry values and tells the runner when its tunables changed.
Timers, refresh ticks and error handling live in PolicyRunner.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from autoprofiler.contracts.settings import SettingsContract
from autoprofiler.scheduler.actions import ProfilerAction, ScheduleEntry
from autoprofiler.scheduler.expiration import ExpirationPolicy, ProcessExpirationPolicy
from autoprofiler.scheduler.tunables import Tunables, TunablesHolder
from autoprofiler.settings.profiler_settings import ProfilerSettings

logger = logging.getLogger(__name__)


class SchedulingPolicy:
    source: str = "SchedulingPolicy"

    def __init__(
        self,
        tunables: Tunables,
        expiration_policy: Optional[ExpirationPolicy] = None,
        settings: Optional[ProfilerSettings] = None,
    ):
        self._holder = TunablesHolder(tunables)
        self.expiration_policy = expiration_policy or ProcessExpirationPolicy()
        self.settings = settings

    @property
    def tunables(self) -> Tunables:
        return self._holder.current

    async def get_schedule(self) -> List[ScheduleEntry]:
        """
        Evaluate the policy. An expired policy only ever stands by, whatever
        its signals say.
        """
        if self.expiration_policy.expired:
            logger.debug(f"[{self.source}] Expired, standing by")
            return self.standby_schedule()
        return await self.build_schedule()

    async def build_schedule(self) -> List[ScheduleEntry]:
        raise NotImplementedError

    def needs_refresh(self) -> bool:
        """
        Rebuild tunables from the latest settings contract.

        Returns True when any tunable changed. Policies without settings
        never refresh.
        """
        if self.settings is None:
            return False

        updated = self.build_tunables(self.settings.current, self.tunables)
        changed = self._holder.swap(updated)
        logger.debug(f"[{self.source}] Policy needs refresh: {changed}")
        return changed

    def build_tunables(self, contract: SettingsContract, current: Tunables) -> Tunables:
        return current.with_changes(profiler_enabled=contract.enabled)

    def profiling_schedule(self, duration: Optional[timedelta] = None) -> List[ScheduleEntry]:
        t = self.tunables
        return [
            ScheduleEntry(duration if duration is not None else t.profiling_duration,
                          ProfilerAction.START_PROFILING_SESSION),
            ScheduleEntry(t.profiling_cooldown, ProfilerAction.STANDBY),
        ]

    def standby_schedule(self) -> List[ScheduleEntry]:
        return [ScheduleEntry(self.tunables.polling_interval, ProfilerAction.STANDBY)]

    def __repr__(self) -> str:
        return f"<{self.source} tunables={self.tunables}>"
