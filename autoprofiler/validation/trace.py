"""
autoprofiler/validation/trace.py

The capture file format: newline-delimited JSON, one event per line.

    {"opcode": "Start", "activity_path": "/1/2/", "timestamp": 1712.5,
     "name": "GET /orders", "payload": {}}

TraceLog loads a whole file into an indexed sequence so validators can walk
it in event order or jump to any position.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from autoprofiler.errors import ErrorCode, ProfilerError

logger = logging.getLogger(__name__)

Opcode = Literal["Start", "Stop", "Info"]


class TraceEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    opcode: Opcode
    activity_path: str = ""
    timestamp: float = Field(default_factory=time.time)
    name: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def correlation_key(self) -> str:
        """Opcode followed by activity path, e.g. "Start/1/2/"."""
        return f"{self.opcode}{self.activity_path}"


class TraceLog:
    """An indexed, randomly traversable trace."""

    def __init__(self, events: List[TraceEvent], path: Optional[Path] = None):
        self._events = events
        self.path = path

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TraceLog":
        """
        Parse a trace file.

        Raises FileNotFoundError when the file is missing and ProfilerError
        (TRACE_CORRUPT) on the first line that isn't a valid event.
        """
        path = Path(path)
        events: List[TraceEvent] = []
        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(TraceEvent.model_validate_json(line))
                except ValidationError as e:
                    raise ProfilerError(
                        ErrorCode.TRACE_CORRUPT,
                        f"Invalid trace event at {path}:{line_no}",
                        details={"line": line_no, "errors": e.errors(include_url=False)},
                    ) from e

        logger.debug(f"[TraceLog] Loaded {len(events)} events from {path}")
        return cls(events, path)

    @property
    def events(self) -> List[TraceEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index: int) -> TraceEvent:
        return self._events[index]

    def __iter__(self) -> Iterator[TraceEvent]:
        return iter(self._events)

    def activity_markers(self) -> Iterator[TraceEvent]:
        """Start and Stop events, in event order."""
        return (e for e in self._events if e.opcode in ("Start", "Stop"))


class TraceEventWriter:
    """Appends TraceEvents to a trace file. Safe to share between threads."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._file = None
        self.count = 0

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding="utf-8")

    def write(self, event: TraceEvent) -> bool:
        line = json.dumps(event.model_dump(mode="json"))
        with self._lock:
            if self._file is None:
                return False
            self._file.write(line + "\n")
            self.count += 1
        return True

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.flush()
                self._file.close()
                self._file = None

    def __enter__(self) -> "TraceEventWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
