"""
autoprofiler/agent.py

Wires the agent together: settings, resource sampling, capture provider,
policies and orchestrator, all sharing one EventBus.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from autoprofiler.base.config import ProfilerConfig
from autoprofiler.contracts.settings import SettingsContract
from autoprofiler.monitoring.resources import PsutilResourceUsageSource, ResourceUsageSource
from autoprofiler.observer.bus import EventBus
from autoprofiler.observer.sinks import LogSink
from autoprofiler.profiler.provider import ProfilerProvider
from autoprofiler.profiler.trace_control import FileTraceControl, TraceControl
from autoprofiler.profiler.uploader import TraceUploader
from autoprofiler.samples.container import SampleActivityContainerFactory
from autoprofiler.scheduler.orchestrator import Orchestrator
from autoprofiler.scheduler.policies import create_policy
from autoprofiler.settings.profiler_settings import ProfilerSettings
from autoprofiler.settings.sources import JsonFileSettingsSource, SettingsSource, StaticSettingsSource
from autoprofiler.validation.chain import TraceValidatorFactory

logger = logging.getLogger(__name__)


@dataclass
class ProfilerAgent:
    config: ProfilerConfig
    bus: EventBus
    settings: ProfilerSettings
    provider: ProfilerProvider
    orchestrator: Orchestrator

    async def run(self, cancel_event: asyncio.Event) -> None:
        await self.orchestrator.run(cancel_event)


def build_agent(
    config: ProfilerConfig,
    policy_names: Sequence[str] = ("memory",),
    trace_control: Optional[TraceControl] = None,
    uploader: Optional[TraceUploader] = None,
    settings_source: Optional[SettingsSource] = None,
    resource_source: Optional[ResourceUsageSource] = None,
    bus: Optional[EventBus] = None,
    rng: Optional[random.Random] = None,
) -> ProfilerAgent:
    bus = bus or EventBus()
    if not bus.has_subscribers("*"):
        bus.subscribe("*", LogSink().handle)

    initial = SettingsContract.from_config(config)
    if settings_source is None and not config.scheduling.standalone_mode and config.storage.settings_file:
        settings_source = JsonFileSettingsSource(config.storage.settings_file)
    if settings_source is None:
        settings_source = StaticSettingsSource(initial)

    settings = ProfilerSettings(
        initial,
        source=settings_source,
        frequency=config.scheduling.configuration_update_frequency,
    )

    services: List = [settings]
    if resource_source is None:
        sampler = PsutilResourceUsageSource(
            sampling_interval=config.triggers.sampling_interval,
            average_window=config.triggers.average_window,
        )
        services.append(sampler)
        resource_source = sampler

    config.ensure_directories()
    provider = ProfilerProvider(
        trace_control or FileTraceControl(),
        traces_dir=config.storage.traces_path,
        uploader=uploader,
        bus=bus,
        container_factory=SampleActivityContainerFactory(
            precision=config.sampling.precision,
            minimum_value=config.sampling.minimum_value,
        ),
        validator_factory=TraceValidatorFactory(enabled=config.sampling.validate_traces),
    )

    policies = [create_policy(name, config, settings, resource_source, rng=rng) for name in policy_names]
    orchestrator = Orchestrator(
        policies,
        provider,
        bus=bus,
        initial_delay=config.scheduling.initial_delay,
        services=services,
    )
    logger.info(f"[ProfilerAgent] Built with policies: {', '.join(policy_names)}")
    return ProfilerAgent(config, bus, settings, provider, orchestrator)
