# ============================================================================
# tests/unit/test_orchestrator.py
# One capture at a time, owned by exactly one policy
# ============================================================================

import asyncio
from datetime import timedelta

import pytest

from autoprofiler.scheduler import OneTimeSchedulingPolicy, Orchestrator

TICK = timedelta(milliseconds=10)


class FakeProvider:
    def __init__(self, stop_error=None, running_after_failed_stop=False):
        self.running = False
        self.stop_error = stop_error
        self.running_after_failed_stop = running_after_failed_stop
        self.started_by = []
        self.stopped_by = []

    @property
    def is_running(self):
        return self.running

    async def start(self, source):
        if self.running:
            return False
        self.running = True
        self.started_by.append(source)
        return True

    async def stop(self, source):
        if self.stop_error:
            self.running = self.running_after_failed_stop
            raise self.stop_error
        if not self.running:
            return False
        self.running = False
        self.stopped_by.append(source)
        return True


class SlowStopProvider(FakeProvider):
    def __init__(self, stop_seconds):
        super().__init__()
        self.stop_seconds = stop_seconds

    async def stop(self, source):
        # Stands in for post-stop validation and upload
        await asyncio.sleep(self.stop_seconds)
        return await super().stop(source)


class NamedPolicy(OneTimeSchedulingPolicy):
    def __init__(self, name):
        super().__init__(duration=TICK, polling_interval=TICK)
        self.source = name


class RecordingService:
    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def run(self, cancel_event):
        self.started.set()
        try:
            # Ignores cancel_event; only task cancellation ends it
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


@pytest.mark.asyncio
async def test_only_one_policy_holds_the_capture():
    provider = FakeProvider()
    memory, cpu = NamedPolicy("memory"), NamedPolicy("cpu")
    orchestrator = Orchestrator([memory, cpu], provider)

    assert await orchestrator.start_profiling(memory) is True
    assert await orchestrator.start_profiling(cpu) is False
    assert orchestrator.owner is memory
    assert provider.started_by == ["memory"]


@pytest.mark.asyncio
async def test_only_the_owner_can_stop():
    provider = FakeProvider()
    memory, cpu = NamedPolicy("memory"), NamedPolicy("cpu")
    orchestrator = Orchestrator([memory, cpu], provider)
    await orchestrator.start_profiling(memory)

    assert await orchestrator.stop_profiling(cpu) is False
    assert provider.is_running is True

    assert await orchestrator.stop_profiling(memory) is True
    assert orchestrator.owner is None
    assert provider.stopped_by == ["memory"]

    assert await orchestrator.start_profiling(cpu) is True


@pytest.mark.asyncio
async def test_failed_stop_releases_ownership_when_capture_is_gone():
    provider = FakeProvider(stop_error=RuntimeError("disable failed"))
    memory, cpu = NamedPolicy("memory"), NamedPolicy("cpu")
    orchestrator = Orchestrator([memory, cpu], provider)
    await orchestrator.start_profiling(memory)

    with pytest.raises(RuntimeError):
        await orchestrator.stop_profiling(memory)

    assert orchestrator.owner is None
    provider.stop_error = None
    assert await orchestrator.start_profiling(cpu) is True


@pytest.mark.asyncio
async def test_failed_stop_keeps_ownership_while_capture_runs():
    provider = FakeProvider(stop_error=RuntimeError("disable failed"), running_after_failed_stop=True)
    memory = NamedPolicy("memory")
    orchestrator = Orchestrator([memory], provider)
    await orchestrator.start_profiling(memory)

    with pytest.raises(RuntimeError):
        await orchestrator.stop_profiling(memory)

    assert orchestrator.owner is memory


@pytest.mark.asyncio
async def test_owner_stop_gives_up_on_a_held_lock():
    provider = FakeProvider()
    memory = NamedPolicy("memory")
    orchestrator = Orchestrator([memory], provider)
    orchestrator.LOCK_TIMEOUT = 0.01
    orchestrator.STOP_LOCK_TIMEOUT = 0.01
    await orchestrator.start_profiling(memory)

    await orchestrator._lock.acquire()
    try:
        assert await orchestrator.start_profiling(NamedPolicy("cpu")) is False
        assert await orchestrator.stop_profiling(memory) is False
    finally:
        orchestrator._lock.release()

    assert orchestrator.owner is memory
    assert provider.is_running is True
    assert await orchestrator.stop_profiling(memory) is True


@pytest.mark.asyncio
async def test_non_owner_stop_does_not_wait_for_a_slow_stop():
    provider = SlowStopProvider(stop_seconds=0.3)
    memory, cpu = NamedPolicy("memory"), NamedPolicy("cpu")
    orchestrator = Orchestrator([memory, cpu], provider)
    orchestrator.LOCK_TIMEOUT = 0.01
    await orchestrator.start_profiling(memory)

    owner_stop = asyncio.create_task(orchestrator.stop_profiling(memory))
    await asyncio.sleep(0.05)

    assert await asyncio.wait_for(orchestrator.stop_profiling(cpu), timeout=0.1) is False
    assert await owner_stop is True
    assert orchestrator.owner is None
    assert provider.stopped_by == ["memory"]


@pytest.mark.asyncio
async def test_run_executes_policies_and_cancels_services():
    provider = FakeProvider()
    service = RecordingService()
    first, second = NamedPolicy("first"), NamedPolicy("second")
    orchestrator = Orchestrator([first, second], provider, services=[service])
    cancel = asyncio.Event()

    task = asyncio.create_task(orchestrator.run(cancel))
    await asyncio.sleep(0.1)
    cancel.set()
    await asyncio.wait_for(task, timeout=1.0)

    # Both policies race for the first start; only one of them wins
    assert service.started.is_set()
    assert service.cancelled is True
    assert len(provider.started_by) == 1
    assert provider.running is False
    assert orchestrator.owner is None


@pytest.mark.asyncio
async def test_cancel_during_initial_delay():
    provider = FakeProvider()
    orchestrator = Orchestrator([NamedPolicy("memory")], provider, initial_delay=timedelta(hours=1))
    cancel = asyncio.Event()

    task = asyncio.create_task(orchestrator.run(cancel))
    await asyncio.sleep(0.02)
    cancel.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert provider.started_by == []
