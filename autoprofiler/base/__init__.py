from .config import (
    ProfilerConfig,
    SchedulingConfig,
    TriggerConfig,
    SamplingConfig,
    StorageConfig,
    LogConfig,
    get_config,
    set_config,
    setup_logging,
)

__all__ = [
    "ProfilerConfig",
    "SchedulingConfig",
    "TriggerConfig",
    "SamplingConfig",
    "StorageConfig",
    "LogConfig",
    "get_config",
    "set_config",
    "setup_logging",
]
