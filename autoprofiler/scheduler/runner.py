"""
autoprofiler/scheduler/runner.py

PolicyRunner drives one SchedulingPolicy.

Two duties run side by side and share one stop event:
1. the schedule executor evaluates the policy and carries out each entry
2. the refresh checker asks the policy whether its tunables changed

Neither duty lets an exception escape. A failed evaluation or action is
logged and retried after the polling interval.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

from autoprofiler.errors import CaptureFailureError, ConfigurationStaleError, ErrorCode
from autoprofiler.observer.bus import EventBus
from autoprofiler.observer.events import EventLevel, EventType, TelemetryEvent
from autoprofiler.scheduler.actions import ProfilerAction, ScheduleEntry
from autoprofiler.scheduler.policy import SchedulingPolicy
from autoprofiler.utils.async_helpers import create_safe_task
from autoprofiler.utils.delay import DelaySource

logger = logging.getLogger(__name__)


class CaptureCoordinator(Protocol):
    async def start_profiling(self, policy: SchedulingPolicy) -> bool:
        ...

    async def stop_profiling(self, policy: SchedulingPolicy) -> bool:
        ...


class PolicyRunner:

    def __init__(
        self,
        policy: SchedulingPolicy,
        coordinator: CaptureCoordinator,
        bus: Optional[EventBus] = None,
        delay_source: Optional[DelaySource] = None,
    ):
        self.policy = policy
        self._coordinator = coordinator
        self._bus = bus
        self._delay_source = delay_source or DelaySource()
        self._tag = f"[PolicyRunner:{policy.source}]"

    async def run(self, cancel_event: asyncio.Event) -> None:
        """Run until cancel_event is set or the policy expires."""
        stop = asyncio.Event()

        async def _relay_cancel():
            await cancel_event.wait()
            stop.set()

        relay = create_safe_task(_relay_cancel(), name=f"cancel:{self.policy.source}")
        refresher = create_safe_task(self._refresh_loop(stop), name=f"refresh:{self.policy.source}")
        logger.info(f"{self._tag} Started")
        try:
            await self._execute_loop(stop)
        finally:
            stop.set()
            relay.cancel()
            await asyncio.gather(relay, refresher, return_exceptions=True)
            await self._release_capture()
            logger.info(f"{self._tag} Stopped")

    # ------------------------------------------------------------------
    # Schedule executor
    # ------------------------------------------------------------------

    async def _execute_loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            if self.policy.expiration_policy.expired:
                logger.info(f"{self._tag} Policy expired. No more captures.")
                await self._emit(EventType.POLICY_EXPIRED, {})
                return

            tunables = self.policy.tunables
            if not tunables.enabled:
                logger.debug(
                    f"{self._tag} Disabled (profiler={tunables.profiler_enabled}, "
                    f"policy={tunables.policy_enabled}). Idling."
                )
                if not await self._delay_source.delay(tunables.polling_interval, stop):
                    return
                continue

            try:
                entries = await self.policy.get_schedule()
            except Exception as e:
                logger.error(f"{self._tag} Schedule evaluation failed: {e}", exc_info=True)
                if not await self._delay_source.delay(tunables.polling_interval, stop):
                    return
                continue

            await self._emit(
                EventType.SCHEDULE_EVALUATED,
                {"entries": [entry.to_dict() for entry in entries]},
                level=EventLevel.DEBUG,
            )

            if not entries:
                entries = self.policy.standby_schedule()
            if not await self._run_entries(entries, stop):
                return

    async def _run_entries(self, entries: List[ScheduleEntry], stop: asyncio.Event) -> bool:
        """Carry out one evaluated schedule. False means: stop the loop."""
        for entry in entries:
            if stop.is_set():
                return False

            try:
                await self._execute(entry)
            except Exception as e:
                failure = e if isinstance(e, CaptureFailureError) else CaptureFailureError(
                    f"{entry.action.value} failed: {e}",
                    code=(ErrorCode.CAPTURE_START_FAILED
                          if entry.action == ProfilerAction.START_PROFILING_SESSION
                          else ErrorCode.CAPTURE_STOP_FAILED),
                )
                logger.error(f"{self._tag} {failure}", exc_info=True)
                await self._emit(EventType.CAPTURE_FAILED, failure.to_dict(), level=EventLevel.ERROR)
                return await self._delay_source.delay(self.policy.tunables.polling_interval, stop)

            if not await self._delay_source.delay(entry.duration, stop):
                return False
        return True

    async def _execute(self, entry: ScheduleEntry) -> None:
        if entry.action == ProfilerAction.START_PROFILING_SESSION:
            if self.policy.expiration_policy.expired:
                logger.debug(f"{self._tag} Skipping start, policy expired")
                return
            started = await self._coordinator.start_profiling(self.policy)
            if started:
                self.policy.expiration_policy.record_start()
                logger.info(f"{self._tag} Profiling started for {entry.duration}")
            else:
                logger.info(f"{self._tag} Start refused, another capture is active")
        else:
            await self._coordinator.stop_profiling(self.policy)

    async def _release_capture(self) -> None:
        try:
            await self._coordinator.stop_profiling(self.policy)
        except Exception as e:
            logger.error(f"{self._tag} Failed to stop capture on exit: {e}")

    # ------------------------------------------------------------------
    # Refresh checker
    # ------------------------------------------------------------------

    async def _refresh_loop(self, stop: asyncio.Event) -> None:
        while await self._delay_source.delay(self.policy.tunables.refresh_interval, stop):
            try:
                if self.policy.needs_refresh():
                    tunables = self.policy.tunables
                    logger.info(f"{self._tag} Tunables refreshed: {tunables}")
                    await self._emit(EventType.POLICY_REFRESHED, {"tunables": repr(tunables)})
            except Exception as e:
                stale = ConfigurationStaleError(
                    "Policy refresh failed, keeping previous tunables",
                    details={"error": str(e)},
                )
                logger.warning(f"{self._tag} {stale}")

    async def _emit(
        self,
        event_type: EventType,
        payload: Dict[str, Any],
        level: EventLevel = EventLevel.INFO,
    ) -> None:
        if self._bus is None:
            return
        await self._bus.emit(TelemetryEvent(
            type=event_type,
            source=self.policy.source,
            level=level,
            payload=payload,
        ))
