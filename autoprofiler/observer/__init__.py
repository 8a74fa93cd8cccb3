from .events import TelemetryEvent, EventType, EventLevel
from .bus import EventBus
from .sinks import FileSink, LogSink

__all__ = [
    "TelemetryEvent",
    "EventType",
    "EventLevel",
    "EventBus",
    "FileSink",
    "LogSink",
]
