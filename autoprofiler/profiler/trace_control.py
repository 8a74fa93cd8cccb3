"""
autoprofiler/profiler/trace_control.py

The capture primitive seen from the agent: enable(path) starts writing a
trace, disable() finishes it. FileTraceControl is the in-process
implementation; it writes the NDJSON trace format and lets the host record
activity markers while a capture is on.
"""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from autoprofiler.errors import CaptureFailureError, ErrorCode
from autoprofiler.validation.trace import TraceEvent, TraceEventWriter

logger = logging.getLogger(__name__)


class TraceControl(Protocol):
    session_start_utc: Optional[datetime]

    def enable(self, path: Path) -> None:
        ...

    def disable(self) -> None:
        ...


class FileTraceControl:

    def __init__(self):
        self._lock = threading.Lock()
        self._writer: Optional[TraceEventWriter] = None
        self.session_start_utc: Optional[datetime] = None

    @property
    def is_enabled(self) -> bool:
        return self._writer is not None

    @property
    def trace_path(self) -> Optional[Path]:
        writer = self._writer
        return writer.path if writer else None

    def enable(self, path: Path) -> None:
        with self._lock:
            if self._writer is not None:
                raise CaptureFailureError(
                    f"Trace already enabled at {self._writer.path}",
                    code=ErrorCode.CAPTURE_ALREADY_RUNNING,
                )
            writer = TraceEventWriter(path)
            writer.open()
            self._writer = writer
            self.session_start_utc = datetime.now(timezone.utc)

        writer.write(TraceEvent(opcode="Info", name="TraceStarted"))
        logger.info(f"[FileTraceControl] Tracing to {path}")

    def disable(self) -> None:
        with self._lock:
            writer = self._writer
            if writer is None:
                raise CaptureFailureError("Trace is not enabled", code=ErrorCode.CAPTURE_NOT_RUNNING)
            self._writer = None

        writer.write(TraceEvent(opcode="Info", name="TraceStopped", payload={"events": writer.count}))
        writer.close()
        logger.info(f"[FileTraceControl] Trace {writer.path} closed ({writer.count} events)")

    def write_event(
        self,
        opcode: str,
        activity_path: str,
        name: str = "",
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Record a marker. Returns False when no capture is on."""
        writer = self._writer
        if writer is None:
            return False
        return writer.write(TraceEvent(
            opcode=opcode,
            activity_path=activity_path,
            name=name,
            payload=payload or {},
        ))
