from .resources import (
    ResourceUsageSource,
    RollingAverage,
    PsutilMemoryProvider,
    PsutilResourceUsageSource,
    StaticResourceUsageSource,
    MemInfoMemoryProvider,
    parse_meminfo_line,
)

__all__ = [
    "ResourceUsageSource",
    "RollingAverage",
    "PsutilMemoryProvider",
    "PsutilResourceUsageSource",
    "StaticResourceUsageSource",
    "MemInfoMemoryProvider",
    "parse_meminfo_line",
]
