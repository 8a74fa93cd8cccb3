"""
autoprofiler/scheduler/policies.py
The concrete scheduling policies.

POLICIES:
- **OneTimeSchedulingPolicy**: one capture shortly after startup, then done
- **MemoryMonitoringSchedulingPolicy**: capture while average memory usage is high
- **CpuMonitoringSchedulingPolicy**: capture while average CPU usage is high
- **RandomSchedulingPolicy**: spread a small share of wall-clock time over random slots
- **OnDemandSchedulingPolicy**: capture once per collection plan pushed through settings
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from autoprofiler.base.config import ProfilerConfig
from autoprofiler.contracts.settings import SettingsContract
from autoprofiler.errors import ErrorCode, ProfilerError, ResourceSignalUnavailableError
from autoprofiler.monitoring.resources import ResourceUsageSource
from autoprofiler.scheduler.actions import ProfilerAction, ScheduleEntry
from autoprofiler.scheduler.expiration import (
    ExpirationPolicy,
    LimitedExpirationPolicy,
    ProcessExpirationPolicy,
)
from autoprofiler.scheduler.policy import SchedulingPolicy
from autoprofiler.scheduler.tunables import Tunables
from autoprofiler.settings.profiler_settings import ProfilerSettings

logger = logging.getLogger(__name__)

_DEFAULT_POLLING = timedelta(seconds=5)


class OneTimeSchedulingPolicy(SchedulingPolicy):
    """
    Trigger once. Wired with a LimitedExpirationPolicy(1) by default.

    The START is handed out by the first evaluation only; later evaluations
    stand by even when that START was refused.
    """

    source = "OneTimeSchedulingPolicy"

    def __init__(
        self,
        duration: timedelta = timedelta(seconds=30),
        polling_interval: timedelta = _DEFAULT_POLLING,
        expiration_policy: Optional[ExpirationPolicy] = None,
    ):
        super().__init__(
            Tunables(
                profiling_duration=duration,
                profiling_cooldown=timedelta(hours=4),
                polling_interval=polling_interval,
                refresh_interval=polling_interval,
            ),
            expiration_policy=expiration_policy or LimitedExpirationPolicy(1),
        )
        self._scheduled = False

    async def build_schedule(self) -> List[ScheduleEntry]:
        if self._scheduled:
            return self.standby_schedule()

        self._scheduled = True
        d = self.tunables.profiling_duration
        return [
            ScheduleEntry(d, ProfilerAction.START_PROFILING_SESSION),
            ScheduleEntry(d, ProfilerAction.STANDBY),
        ]

    def needs_refresh(self) -> bool:
        return False


class ResourceMonitoringSchedulingPolicy(SchedulingPolicy):
    """
    Starts a capture when a resource signal is above its threshold.

    A failed reading counts as below threshold: the policy stays in standby
    and tries again after the polling interval.
    """

    signal_name = "resource"

    def __init__(
        self,
        settings: ProfilerSettings,
        resource_source: ResourceUsageSource,
        polling_interval: timedelta = _DEFAULT_POLLING,
        expiration_policy: Optional[ExpirationPolicy] = None,
    ):
        base = Tunables(polling_interval=polling_interval, refresh_interval=polling_interval)
        super().__init__(
            self.build_tunables(settings.current, base),
            expiration_policy=expiration_policy or ProcessExpirationPolicy(),
            settings=settings,
        )
        self.resource_source = resource_source

    def read_usage(self) -> float:
        raise NotImplementedError

    async def build_schedule(self) -> List[ScheduleEntry]:
        try:
            usage = self.read_usage()
        except Exception as e:
            err = ResourceSignalUnavailableError(
                f"Cannot read {self.signal_name} usage, treating as below threshold",
                details={"error": str(e)},
            )
            logger.warning(f"[{self.source}] {err}")
            return self.standby_schedule()

        threshold = self.tunables.threshold
        logger.debug(f"[{self.source}] {self.signal_name} usage: {usage:.2f}% (threshold {threshold}%)")

        if threshold is not None and usage > threshold:
            logger.info(f"[{self.source}] {self.signal_name} usage {usage:.2f}% above {threshold}%. Profiling.")
            return self.profiling_schedule()
        return self.standby_schedule()


class MemoryMonitoringSchedulingPolicy(ResourceMonitoringSchedulingPolicy):
    source = "MemoryMonitoringSchedulingPolicy"
    signal_name = "memory"

    def read_usage(self) -> float:
        return self.resource_source.get_average_memory_usage()

    def build_tunables(self, contract: SettingsContract, current: Tunables) -> Tunables:
        trigger = contract.memory_trigger
        return current.with_changes(
            profiler_enabled=contract.enabled,
            policy_enabled=trigger.enabled,
            profiling_duration=timedelta(seconds=trigger.memory_trigger_profiling_duration_in_seconds),
            profiling_cooldown=timedelta(seconds=trigger.memory_trigger_cooldown_in_seconds),
            threshold=trigger.memory_threshold,
        )


class CpuMonitoringSchedulingPolicy(ResourceMonitoringSchedulingPolicy):
    source = "CpuMonitoringSchedulingPolicy"
    signal_name = "CPU"

    def read_usage(self) -> float:
        return self.resource_source.get_average_cpu_usage()

    def build_tunables(self, contract: SettingsContract, current: Tunables) -> Tunables:
        trigger = contract.cpu_trigger
        return current.with_changes(
            profiler_enabled=contract.enabled,
            policy_enabled=trigger.enabled,
            profiling_duration=timedelta(seconds=trigger.cpu_trigger_profiling_duration_in_seconds),
            profiling_cooldown=timedelta(seconds=trigger.cpu_trigger_cooldown_in_seconds),
            threshold=trigger.cpu_threshold,
        )


class RandomSchedulingPolicy(SchedulingPolicy):
    """
    Profiles a fixed share of wall-clock time at random moments.

    Each evaluation plans a 12 hour window: the window is cut into segments
    of one profiling duration, round(window * overhead / duration) of them
    are picked at random, and the standby time between picks is merged.
    """

    source = "RandomSchedulingPolicy"
    SCHEDULE_WINDOW = timedelta(hours=12)

    def __init__(
        self,
        settings: ProfilerSettings,
        polling_interval: timedelta = _DEFAULT_POLLING,
        rng: Optional[random.Random] = None,
        expiration_policy: Optional[ExpirationPolicy] = None,
    ):
        base = Tunables(
            profiling_cooldown=timedelta(0),
            polling_interval=polling_interval,
            refresh_interval=polling_interval,
        )
        super().__init__(
            self.build_tunables(settings.current, base),
            expiration_policy=expiration_policy or ProcessExpirationPolicy(),
            settings=settings,
        )
        self._rng = rng or random.Random()

    def build_tunables(self, contract: SettingsContract, current: Tunables) -> Tunables:
        sampling = contract.sampling
        return current.with_changes(
            profiler_enabled=contract.enabled,
            policy_enabled=sampling.enabled,
            profiling_duration=timedelta(seconds=sampling.profiling_duration_in_seconds),
            overhead=sampling.sampling_rate,
        )

    async def build_schedule(self) -> List[ScheduleEntry]:
        t = self.tunables
        window = self.SCHEDULE_WINDOW.total_seconds()
        duration = t.profiling_duration.total_seconds()

        target = int(round(window * t.overhead / duration))
        logger.debug(
            f"[{self.source}] Overhead {t.overhead:.2%}: {target} sessions of {duration}s "
            f"over the next {self.SCHEDULE_WINDOW}"
        )
        if target == 0:
            return self.standby_schedule()

        segments = int(round(window / duration))
        if segments == 0:
            raise ProfilerError(
                ErrorCode.SCHEDULE_EVALUATION_FAILED,
                "No valid segment for random scheduling",
                details={"duration": duration},
            )

        picks = set(self._rng.sample(range(segments), min(target, segments)))

        result: List[ScheduleEntry] = []
        idle_segments = 0
        for segment in range(segments):
            if segment not in picks:
                idle_segments += 1
                continue
            if idle_segments:
                _merge_standby(result, t.profiling_duration * idle_segments)
                idle_segments = 0
            result.append(ScheduleEntry(t.profiling_duration, ProfilerAction.START_PROFILING_SESSION))
            result.append(ScheduleEntry(t.profiling_cooldown, ProfilerAction.STANDBY))

        if idle_segments:
            _merge_standby(result, t.profiling_duration * idle_segments)
        return result


def _merge_standby(entries: List[ScheduleEntry], duration: timedelta) -> None:
    if entries and entries[-1].action == ProfilerAction.STANDBY:
        entries[-1] = ScheduleEntry(entries[-1].duration + duration, ProfilerAction.STANDBY)
    else:
        entries.append(ScheduleEntry(duration, ProfilerAction.STANDBY))


class OnDemandSchedulingPolicy(SchedulingPolicy):
    """
    Starts one capture per new collection plan found in the settings.

    A plan is honoured only while its expiration is in the future. The
    requested duration must be in (0, 360] seconds; anything else falls
    back to 120 seconds.
    """

    source = "OnDemandSchedulingPolicy"
    DEFAULT_DURATION_SECONDS = 120
    MAX_DURATION_SECONDS = 360

    def __init__(
        self,
        settings: ProfilerSettings,
        duration: timedelta = timedelta(seconds=30),
        polling_interval: timedelta = _DEFAULT_POLLING,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        expiration_policy: Optional[ExpirationPolicy] = None,
    ):
        base = Tunables(
            profiling_duration=duration,
            profiling_cooldown=timedelta(0),
            polling_interval=polling_interval,
            refresh_interval=polling_interval,
        )
        super().__init__(
            self.build_tunables(settings.current, base),
            expiration_policy=expiration_policy or ProcessExpirationPolicy(),
            settings=settings,
        )
        self._clock = clock
        self._evaluated_plan: Optional[str] = None

    async def build_schedule(self) -> List[ScheduleEntry]:
        # Best effort: a slow settings source must not block the schedule forever.
        await self.settings.wait_for_initialized(self.tunables.refresh_interval)

        contract = self.settings.current
        plan = contract.collection_plan
        if not plan or plan == self._evaluated_plan:
            return self.standby_schedule()

        self._evaluated_plan = plan
        if not self._is_active(contract):
            logger.info(f"[{self.source}] Collection plan {plan} already expired. Ignored.")
            return self.standby_schedule()

        seconds = contract.on_demand.profiling_duration_in_seconds
        if seconds <= 0:
            seconds = int(self.tunables.profiling_duration.total_seconds())
        if seconds <= 0 or seconds > self.MAX_DURATION_SECONDS:
            logger.warning(
                f"[{self.source}] Invalid on-demand duration ({seconds}s). "
                f"Using the default of {self.DEFAULT_DURATION_SECONDS}s instead."
            )
            seconds = self.DEFAULT_DURATION_SECONDS

        logger.info(f"[{self.source}] Collection plan {plan} accepted, profiling for {seconds}s")
        return [
            ScheduleEntry(timedelta(seconds=seconds), ProfilerAction.START_PROFILING_SESSION),
            ScheduleEntry(timedelta(0), ProfilerAction.STANDBY),
        ]

    def _is_active(self, contract: SettingsContract) -> bool:
        expiration = contract.on_demand.expiration
        if expiration is None:
            return True
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return expiration >= self._clock()


POLICY_NAMES = ("memory", "cpu", "once", "random", "ondemand")


def create_policy(
    name: str,
    config: ProfilerConfig,
    settings: ProfilerSettings,
    resource_source: ResourceUsageSource,
    rng: Optional[random.Random] = None,
) -> SchedulingPolicy:
    """Build a policy by its short name, with tunables seeded from config."""
    polling = config.scheduling.configuration_update_frequency
    builders: Dict[str, Callable[[], SchedulingPolicy]] = {
        "memory": lambda: MemoryMonitoringSchedulingPolicy(settings, resource_source, polling),
        "cpu": lambda: CpuMonitoringSchedulingPolicy(settings, resource_source, polling),
        "once": lambda: OneTimeSchedulingPolicy(config.scheduling.duration, polling),
        "random": lambda: RandomSchedulingPolicy(settings, polling, rng=rng),
        "ondemand": lambda: OnDemandSchedulingPolicy(settings, config.scheduling.duration, polling),
    }
    builder = builders.get(name)
    if builder is None:
        raise ProfilerError(
            ErrorCode.SCHEDULE_POLICY_NOT_REGISTERED,
            f"Unknown scheduling policy '{name}'",
            details={"known": list(POLICY_NAMES)},
        )
    return builder()
