"""
autoprofiler/validation/upload_context.py

What the uploader receives once a capture is over, and the last sanity
check before it is handed off.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from autoprofiler.contracts.samples import SampleActivity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadArtifact:
    trace_file_path: Path
    session_id: str
    validated_samples: List[SampleActivity] = field(default_factory=list)
    is_trace_valid: bool = False
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trace_file_path": str(self.trace_file_path),
            "session_id": self.session_id,
            "validated_samples": [s.to_dict() for s in self.validated_samples],
            "is_trace_valid": self.is_trace_valid,
            "source": self.source,
        }


class UploadContextValidator:
    """Returns an error message, or an empty string when the artifact is ready."""

    def validate(self, artifact: UploadArtifact) -> str:
        if not artifact.session_id:
            return "Session id is required."

        if not str(artifact.trace_file_path):
            return "Trace file path is required."

        if not Path(artifact.trace_file_path).is_file():
            return f"Trace file {artifact.trace_file_path} doesn't exist."

        return ""
