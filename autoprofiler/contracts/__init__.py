from .samples import SampleActivity
from .settings import (
    SettingsContract,
    MemoryTriggerSettings,
    CpuTriggerSettings,
    SamplingOptions,
    OnDemandSettings,
)

__all__ = [
    "SampleActivity",
    "SettingsContract",
    "MemoryTriggerSettings",
    "CpuTriggerSettings",
    "SamplingOptions",
    "OnDemandSettings",
]
