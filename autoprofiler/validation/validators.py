"""
autoprofiler/validation/validators.py
Checks applied to a captured trace before it may be uploaded.

Each validator takes the candidate samples and returns the ones that
survive, or raises ValidationFailedError. Validators never catch a
failure raised by a later one; TraceValidationChain runs them in order.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.errors import ValidationFailedError
from autoprofiler.validation.trace import TraceLog

logger = logging.getLogger(__name__)


class TraceValidationContext:
    """State shared by the validators of one chain."""

    def __init__(self, trace_file_path: Path):
        self.trace_file_path = Path(trace_file_path)
        self.trace_log: Optional[TraceLog] = None


class TraceValidator:
    """Base class for a trace validator."""

    name: str = "TraceValidator"

    def validate(self, samples: Sequence[SampleActivity]) -> List[SampleActivity]:
        raise NotImplementedError


class AlwaysPassValidator(TraceValidator):
    name = "AlwaysPassValidator"

    def validate(self, samples: Sequence[SampleActivity]) -> List[SampleActivity]:
        return list(samples)


class ConvertTraceValidator(TraceValidator):
    """
    Stage 1: load the trace into an indexed TraceLog.

    A trace that is missing or can't be parsed is useless; both cases stop
    the upload.
    """

    name = "ConvertTraceValidator"

    def __init__(self, context: TraceValidationContext):
        self.context = context

    def validate(self, samples: Sequence[SampleActivity]) -> List[SampleActivity]:
        path = self.context.trace_file_path
        if not path.is_file():
            message = f"File {path} not found."
            raise ValidationFailedError(
                self.name, message, cause=FileNotFoundError(message), should_stop_uploading=True,
            )

        try:
            self.context.trace_log = TraceLog.from_file(path)
        except Exception as e:
            raise ValidationFailedError(self.name, str(e), cause=e, should_stop_uploading=True) from e

        return list(samples)


@dataclass
class _SampleHolder:
    sample: SampleActivity
    start_hit: bool = False
    stop_hit: bool = False


class ActivityListValidator(TraceValidator):
    """
    Stage 2: keep only samples whose Start and Stop markers are both in the trace.

    Every candidate contributes two keys, "Start"+start path and
    "Stop"+stop path. The trace is scanned once in event order; a sample is
    validated once both of its keys were hit. Scanning stops as soon as
    every key was seen.
    """

    name = "ActivityListValidator"

    def __init__(self, context: TraceValidationContext):
        self.context = context

    def validate(self, samples: Sequence[SampleActivity]) -> List[SampleActivity]:
        if not samples:
            raise ValidationFailedError(self.name, "No sample activities to match.", should_stop_uploading=True)

        trace_log = self.context.trace_log
        if trace_log is None:
            raise ValidationFailedError(self.name, "Trace was not loaded.", should_stop_uploading=True)

        pending: Dict[str, _SampleHolder] = {}
        for sample in samples:
            holder = _SampleHolder(sample)
            pending.setdefault(f"Start{sample.start_activity_id_path}", holder)
            pending.setdefault(f"Stop{sample.stop_activity_id_path}", holder)

        validated: List[SampleActivity] = []
        for event in trace_log.activity_markers():
            holder = pending.pop(event.correlation_key, None)
            if holder is None:
                continue

            if event.opcode == "Start":
                holder.start_hit = True
            else:
                holder.stop_hit = True
            logger.debug(
                f"[{self.name}] Hit on {event.activity_path} ({event.opcode}). "
                f"start={holder.start_hit} stop={holder.stop_hit}"
            )

            if holder.start_hit and holder.stop_hit:
                validated.append(holder.sample)

            if not pending:
                break

        if not validated:
            raise ValidationFailedError(self.name, "No sample activity matches the trace.", should_stop_uploading=True)

        if pending:
            logger.warning(
                f"[{self.name}] {len(validated)}/{len(samples)} samples found in the trace. "
                f"First missing: {next(iter(pending))}"
            )
        return validated
