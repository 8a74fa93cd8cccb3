"""
autoprofiler/contracts/settings.py
The tunables contract.

Settings fetched from a SettingsSource are parsed into a SettingsContract.
Contracts are frozen: a refresh replaces the whole object, never a field.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from autoprofiler.base.config import ProfilerConfig


class MemoryTriggerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(True, description="Whether the memory trigger may start captures")
    memory_threshold: float = Field(80.0, ge=0, le=100, description="Percent of memory in use that fires the trigger")
    memory_trigger_profiling_duration_in_seconds: int = Field(30, gt=0)
    memory_trigger_cooldown_in_seconds: int = Field(14400, ge=0)


class CpuTriggerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(True, description="Whether the CPU trigger may start captures")
    cpu_threshold: float = Field(80.0, ge=0, le=100, description="Percent of CPU in use that fires the trigger")
    cpu_trigger_profiling_duration_in_seconds: int = Field(30, gt=0)
    cpu_trigger_cooldown_in_seconds: int = Field(14400, ge=0)


class SamplingOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    sampling_rate: float = Field(0.01, ge=0, le=1, description="Share of wall-clock time spent profiling")
    profiling_duration_in_seconds: int = Field(30, gt=0)


class OnDemandSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    profiling_duration_in_seconds: int = Field(0, description="0 means the agent default duration")
    expiration: Optional[datetime] = Field(None, description="Requests are ignored after this instant (UTC)")


class SettingsContract(BaseModel):
    """Everything a settings source can change at runtime."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    collection_plan: Optional[str] = Field(None, description="Identifier of an on-demand capture request")
    memory_trigger: MemoryTriggerSettings = Field(default_factory=MemoryTriggerSettings)
    cpu_trigger: CpuTriggerSettings = Field(default_factory=CpuTriggerSettings)
    sampling: SamplingOptions = Field(default_factory=SamplingOptions)
    on_demand: OnDemandSettings = Field(default_factory=OnDemandSettings)

    @classmethod
    def from_config(cls, config: ProfilerConfig) -> "SettingsContract":
        """Seed contract built from startup configuration."""
        duration = max(1, int(config.scheduling.duration.total_seconds()))
        triggers = config.triggers
        return cls(
            enabled=config.scheduling.enabled,
            memory_trigger=MemoryTriggerSettings(
                memory_threshold=triggers.memory_threshold,
                memory_trigger_profiling_duration_in_seconds=duration,
                memory_trigger_cooldown_in_seconds=int(triggers.memory_cooldown.total_seconds()),
            ),
            cpu_trigger=CpuTriggerSettings(
                cpu_threshold=triggers.cpu_threshold,
                cpu_trigger_profiling_duration_in_seconds=duration,
                cpu_trigger_cooldown_in_seconds=int(triggers.cpu_cooldown.total_seconds()),
            ),
            sampling=SamplingOptions(
                sampling_rate=triggers.random_overhead,
                profiling_duration_in_seconds=duration,
            ),
        )
