"""
Profiler Provider (autoprofiler/profiler/provider.py)

PURPOSE:
Runs one capture session at a time and, once it stops, turns it into an
UploadArtifact.

SESSION LIFECYCLE:
1. start(source): take the session lock, enable the trace, open a fresh
   sample container
2. record(sample): completed operations flow into the container
3. stop(source): flatten the samples, disable the trace, release the lock,
   validate the trace against the samples and hand the result to the uploader

A terminal validation failure means no upload for that trace.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.errors import CaptureFailureError, ErrorCode, ValidationFailedError
from autoprofiler.observer.bus import EventBus
from autoprofiler.observer.events import EventLevel, EventType, TelemetryEvent
from autoprofiler.profiler.trace_control import TraceControl
from autoprofiler.profiler.uploader import LoggingUploader, TraceUploader
from autoprofiler.samples.container import SampleActivityContainer, SampleActivityContainerFactory
from autoprofiler.validation.chain import TraceValidatorFactory, ValidationResult
from autoprofiler.validation.upload_context import UploadArtifact, UploadContextValidator

logger = logging.getLogger(__name__)

TRACE_FILE_EXTENSION = ".nettrace"


@dataclass(frozen=True)
class CaptureSession:
    session_id: str
    trace_file_path: Path
    source: str
    started_at: datetime


class ProfilerProvider:

    LOCK_TIMEOUT = 1.0

    def __init__(
        self,
        trace_control: TraceControl,
        traces_dir: Union[str, Path],
        uploader: Optional[TraceUploader] = None,
        bus: Optional[EventBus] = None,
        container_factory: Optional[SampleActivityContainerFactory] = None,
        validator_factory: Optional[TraceValidatorFactory] = None,
        upload_validator: Optional[UploadContextValidator] = None,
    ):
        self.trace_control = trace_control
        self.traces_dir = Path(traces_dir)
        self.uploader = uploader or LoggingUploader()
        self._bus = bus
        self._container_factory = container_factory or SampleActivityContainerFactory()
        self._validator_factory = validator_factory or TraceValidatorFactory()
        self._upload_validator = upload_validator or UploadContextValidator()

        self._session_lock = asyncio.Lock()
        self._session: Optional[CaptureSession] = None
        self._container: Optional[SampleActivityContainer] = None
        self.last_artifact: Optional[UploadArtifact] = None

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    async def start(self, source: str) -> bool:
        try:
            await asyncio.wait_for(self._session_lock.acquire(), timeout=self.LOCK_TIMEOUT)
        except asyncio.TimeoutError:
            logger.info(f"[ProfilerProvider] {source}: a capture is already running")
            return False

        session_id = str(uuid.uuid4())
        trace_path = self.traces_dir / f"{session_id}{TRACE_FILE_EXTENSION}"
        try:
            self.traces_dir.mkdir(parents=True, exist_ok=True)
            self.trace_control.enable(trace_path)
        except Exception as e:
            self._session_lock.release()
            failure = e if isinstance(e, CaptureFailureError) else CaptureFailureError(
                f"Failed to start capture: {e}",
                details={"source": source, "trace_file_path": str(trace_path)},
            )
            await self._emit(EventType.CAPTURE_FAILED, source, failure.to_dict(), EventLevel.ERROR)
            if failure is e:
                raise
            raise failure from e

        self._container = self._container_factory.create()
        self._session = CaptureSession(
            session_id=session_id,
            trace_file_path=trace_path,
            source=source,
            started_at=datetime.now(timezone.utc),
        )
        logger.info(f"[ProfilerProvider] Capture {session_id} started by {source}")
        await self._emit(
            EventType.PROFILING_STARTED, source,
            {"trace_file_path": str(trace_path)}, trace_id=session_id,
        )
        return True

    def record(self, sample: SampleActivity) -> bool:
        """Offer a completed operation. Safe to call from any thread."""
        container = self._container
        if container is None:
            return False
        if not sample.is_valid():
            logger.debug(f"[ProfilerProvider] Dropping invalid sample {sample.operation_name}")
            return False
        return container.add_sample(sample)

    async def stop(self, source: str) -> bool:
        session = self._session
        if session is None:
            logger.debug(f"[ProfilerProvider] {source}: no capture to stop")
            return False

        container = self._container
        samples = container.get_activities() if container else []
        try:
            self.trace_control.disable()
        except Exception as e:
            failure = e if isinstance(e, CaptureFailureError) else CaptureFailureError(
                f"Failed to stop capture: {e}",
                code=ErrorCode.CAPTURE_STOP_FAILED,
                details={"source": source, "session_id": session.session_id},
            )
            await self._emit(EventType.CAPTURE_FAILED, source, failure.to_dict(), EventLevel.ERROR,
                             trace_id=session.session_id)
            if failure is e:
                raise
            raise failure from e
        finally:
            self._container = None
            self._session = None
            self._session_lock.release()

        logger.info(f"[ProfilerProvider] Capture {session.session_id} stopped, {len(samples)} samples")
        await self._emit(
            EventType.PROFILING_STOPPED, source,
            {"trace_file_path": str(session.trace_file_path), "sample_count": len(samples)},
            trace_id=session.session_id,
        )

        self.last_artifact = await self.post_stop(session, samples)
        return True

    async def post_stop(self, session: CaptureSession, samples: List[SampleActivity]) -> Optional[UploadArtifact]:
        """Validate the finished trace and hand it to the uploader."""
        chain = self._validator_factory.create(session.trace_file_path)
        try:
            result = await asyncio.to_thread(chain.validate, samples)
        except ValidationFailedError as e:
            await self._emit(
                EventType.VALIDATION_FAILED, session.source,
                {
                    "validator": e.validator_name,
                    "reason": e.message,
                    "should_stop_uploading": e.should_stop_uploading,
                },
                EventLevel.ERROR if e.should_stop_uploading else EventLevel.WARNING,
                trace_id=session.session_id,
            )
            if e.should_stop_uploading:
                logger.error(f"[ProfilerProvider] Trace {session.trace_file_path} not uploaded: {e.message}")
                return None
            logger.warning(f"[ProfilerProvider] Validation incomplete, uploading unvalidated samples: {e.message}")
            result = ValidationResult(validated_samples=list(samples), is_trace_valid=False)

        await self._emit(
            EventType.TRACE_VALIDATED, session.source,
            {"validated": len(result.validated_samples), "candidates": len(samples)},
            trace_id=session.session_id,
        )

        artifact = UploadArtifact(
            trace_file_path=session.trace_file_path,
            session_id=session.session_id,
            validated_samples=result.validated_samples,
            is_trace_valid=result.is_trace_valid,
            source=session.source,
        )
        error = self._upload_validator.validate(artifact)
        if error:
            logger.error(f"[ProfilerProvider] Upload context invalid: {error}")
            return None

        try:
            await self.uploader.upload(artifact)
        except Exception as e:
            logger.error(f"[ProfilerProvider] Upload of {session.trace_file_path} failed: {e}", exc_info=True)
            return None

        await self._emit(
            EventType.ARTIFACT_HANDED_OFF, session.source,
            {"trace_file_path": str(artifact.trace_file_path), "samples": len(artifact.validated_samples)},
            trace_id=session.session_id,
        )
        return artifact

    async def _emit(
        self,
        event_type: EventType,
        source: str,
        payload: Dict[str, Any],
        level: EventLevel = EventLevel.INFO,
        trace_id: Optional[str] = None,
    ) -> None:
        if self._bus is None:
            return
        await self._bus.emit(TelemetryEvent(
            type=event_type,
            source=source,
            level=level,
            payload=payload,
            trace_id=trace_id,
        ))
