"""
Orchestrator (autoprofiler/scheduler/orchestrator.py)

PURPOSE:
Owns the scheduling policies and the capture provider. Every policy gets a
PolicyRunner; the runners ask the orchestrator to start or stop captures
and the orchestrator makes sure only one policy holds the capture at a time.

BACKGROUND SERVICES:
Anything with an `async run(cancel_event)` method (settings refresher,
resource sampler) can be handed in and is run alongside the runners.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Protocol, Sequence

from autoprofiler.observer.bus import EventBus
from autoprofiler.scheduler.policy import SchedulingPolicy
from autoprofiler.scheduler.runner import PolicyRunner
from autoprofiler.utils.async_helpers import create_safe_task
from autoprofiler.utils.delay import DelaySource, to_seconds

logger = logging.getLogger(__name__)


class CaptureProvider(Protocol):
    @property
    def is_running(self) -> bool:
        ...

    async def start(self, source: str) -> bool:
        ...

    async def stop(self, source: str) -> bool:
        ...


class BackgroundService(Protocol):
    async def run(self, cancel_event: asyncio.Event) -> None:
        ...


class Orchestrator:

    LOCK_TIMEOUT = 0.5
    STOP_LOCK_TIMEOUT = 30.0

    def __init__(
        self,
        policies: Sequence[SchedulingPolicy],
        provider: CaptureProvider,
        bus: Optional[EventBus] = None,
        initial_delay: timedelta = timedelta(0),
        services: Iterable[BackgroundService] = (),
        delay_source: Optional[DelaySource] = None,
    ):
        self.policies: List[SchedulingPolicy] = list(policies)
        self.provider = provider
        self.initial_delay = initial_delay
        self._bus = bus
        self._services = list(services)
        self._delay_source = delay_source or DelaySource()
        self._lock = asyncio.Lock()
        self._owner: Optional[SchedulingPolicy] = None

    @property
    def owner(self) -> Optional[SchedulingPolicy]:
        """The policy currently holding the capture, if any."""
        return self._owner

    async def run(self, cancel_event: asyncio.Event) -> None:
        service_tasks = [
            create_safe_task(service.run(cancel_event), name=f"service:{type(service).__name__}")
            for service in self._services
        ]
        try:
            if to_seconds(self.initial_delay) > 0:
                logger.info(f"[Orchestrator] Waiting {self.initial_delay} before scheduling")
                if not await self._delay_source.delay(self.initial_delay, cancel_event):
                    return

            runners = [
                PolicyRunner(policy, self, bus=self._bus, delay_source=self._delay_source)
                for policy in self.policies
            ]
            logger.info(f"[Orchestrator] Running {len(runners)} policies: "
                        f"{', '.join(p.source for p in self.policies)}")
            await asyncio.gather(*(runner.run(cancel_event) for runner in runners))
        finally:
            for task in service_tasks:
                task.cancel()
            await asyncio.gather(*service_tasks, return_exceptions=True)
            logger.info("[Orchestrator] Stopped")

    async def _acquire(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def start_profiling(self, policy: SchedulingPolicy) -> bool:
        if not await self._acquire(self.LOCK_TIMEOUT):
            logger.info(f"[Orchestrator] {policy.source} could not get the capture lock in time")
            return False
        try:
            if self._owner is not None:
                logger.info(f"[Orchestrator] Capture held by {self._owner.source}, "
                            f"refusing {policy.source}")
                return False

            started = await self.provider.start(policy.source)
            if started:
                self._owner = policy
            return started
        finally:
            self._lock.release()

    async def stop_profiling(self, policy: SchedulingPolicy) -> bool:
        """
        Stop the capture, but only when `policy` is the one holding it.

        Non-owners return False without touching the lock. The owner waits up
        to STOP_LOCK_TIMEOUT and returns False when the lock stays busy.
        """
        if self._owner is not policy:
            return False

        if not await self._acquire(self.STOP_LOCK_TIMEOUT):
            logger.warning(f"[Orchestrator] {policy.source} could not get the capture lock "
                           f"within {self.STOP_LOCK_TIMEOUT}s to stop profiling")
            return False
        try:
            if self._owner is not policy:
                return False

            try:
                stopped = await self.provider.stop(policy.source)
            except Exception:
                if not self.provider.is_running:
                    self._owner = None
                raise

            if stopped or not self.provider.is_running:
                self._owner = None
            return stopped
        finally:
            self._lock.release()
