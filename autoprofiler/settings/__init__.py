from .sources import SettingsSource, StaticSettingsSource, JsonFileSettingsSource
from .profiler_settings import ProfilerSettings

__all__ = [
    "SettingsSource",
    "StaticSettingsSource",
    "JsonFileSettingsSource",
    "ProfilerSettings",
]
