"""
autoprofiler/observer/events.py

Purpose:
    Telemetry signals emitted by the scheduler, the capture provider and
    the validation pipeline. Immutable and serializable.
"""

from __future__ import annotations
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Optional
import json
import uuid


class EventLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EventType(str, Enum):
    # Scheduling
    SCHEDULE_EVALUATED = "SCHEDULE_EVALUATED"   # payload: {entries}
    POLICY_REFRESHED = "POLICY_REFRESHED"       # payload: {tunables}
    POLICY_EXPIRED = "POLICY_EXPIRED"

    # Capture
    PROFILING_STARTED = "PROFILING_STARTED"     # payload: {trace_file_path}
    PROFILING_STOPPED = "PROFILING_STOPPED"     # payload: {trace_file_path, sample_count}
    CAPTURE_FAILED = "CAPTURE_FAILED"           # payload: {error}

    # Validation / handoff
    TRACE_VALIDATED = "TRACE_VALIDATED"         # payload: {validated, candidates}
    VALIDATION_FAILED = "VALIDATION_FAILED"     # payload: {validator, reason, should_stop_uploading}
    ARTIFACT_HANDED_OFF = "ARTIFACT_HANDED_OFF"


@dataclass(frozen=True)
class TelemetryEvent:
    """
    An immutable atom of agent behavior.
    """
    type: EventType
    source: str         # Component name (e.g., "MemoryMonitoringSchedulingPolicy")
    level: EventLevel
    payload: Dict[str, Any] = field(default_factory=dict)

    # Metadata
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    trace_id: Optional[str] = None  # Correlates events of one capture session

    def to_json(self) -> str:
        data = asdict(self)
        data['type'] = self.type.value
        data['level'] = self.level.value
        return json.dumps(data, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> TelemetryEvent:
        data = json.loads(json_str)
        data['type'] = EventType(data['type'])
        data['level'] = EventLevel(data['level'])
        return cls(**data)
