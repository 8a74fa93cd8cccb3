"""
autoprofiler/contracts/samples.py

A SampleActivity is one completed operation observed while a capture was
running. It is created once, when the operation stops, and never mutated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Activity paths like "/#1503500717/" carry no correlation information.
_INVALID_ACTIVITY_PATH = re.compile(r"^/#\d*?/$")


@dataclass(frozen=True)
class SampleActivity:
    operation_name: str
    operation_id: str
    request_id: str
    start_activity_id_path: Optional[str]
    stop_activity_id_path: Optional[str]
    start_time_utc: datetime
    stop_time_utc: datetime
    duration: Optional[timedelta] = field(default=None)

    def __post_init__(self):
        if self.duration is None:
            object.__setattr__(self, "duration", self.stop_time_utc - self.start_time_utc)

    @property
    def duration_ms(self) -> float:
        return self.duration.total_seconds() * 1000.0

    @property
    def correlation_key(self) -> str:
        """The identity hashed for min-hash selection."""
        return self.operation_id or self.request_id

    @property
    def identity(self) -> Tuple[str, str, str, str, str]:
        return (
            self.operation_name or "",
            self.operation_id or "",
            self.start_activity_id_path or "",
            self.stop_activity_id_path or "",
            self.request_id or "",
        )

    def is_valid(self) -> bool:
        """
        A sample is worth keeping only when it can be correlated with the trace.

        Start and stop paths must both be usable, the start path must extend
        the stop path, the timing must be positive and a request id present.
        """
        if not _is_good_activity_path(self.start_activity_id_path):
            return False
        if not _is_good_activity_path(self.stop_activity_id_path):
            return False
        if not self.start_activity_id_path.startswith(self.stop_activity_id_path):
            return False
        if self.start_time_utc >= self.stop_time_utc:
            return False
        if self.duration.total_seconds() <= 0:
            return False
        if not self.request_id:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_name": self.operation_name,
            "operation_id": self.operation_id,
            "request_id": self.request_id,
            "start_activity_id_path": self.start_activity_id_path,
            "stop_activity_id_path": self.stop_activity_id_path,
            "start_time_utc": self.start_time_utc.isoformat(),
            "stop_time_utc": self.stop_time_utc.isoformat(),
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SampleActivity":
        duration_ms = data.get("duration_ms")
        return cls(
            operation_name=data["operation_name"],
            operation_id=data["operation_id"],
            request_id=data["request_id"],
            start_activity_id_path=data.get("start_activity_id_path"),
            stop_activity_id_path=data.get("stop_activity_id_path"),
            start_time_utc=_parse_utc(data["start_time_utc"]),
            stop_time_utc=_parse_utc(data["stop_time_utc"]),
            duration=timedelta(milliseconds=duration_ms) if duration_ms is not None else None,
        )


def _parse_utc(value: str) -> datetime:
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _is_good_activity_path(activity_path: Optional[str]) -> bool:
    if not activity_path:
        logger.debug("Invalid activity id path. Activity id is empty.")
        return False

    if _INVALID_ACTIVITY_PATH.match(activity_path):
        logger.debug(f"Activity id {activity_path} matches the excluded pattern.")
        return False

    return True
