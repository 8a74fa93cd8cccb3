"""
autoprofiler/profiler/uploader.py

Hand-off point to whatever ships traces off the box. The wire format is
not ours; LoggingUploader only records what would have been sent.
"""

import logging
from typing import List, Protocol

from autoprofiler.validation.upload_context import UploadArtifact

logger = logging.getLogger(__name__)


class TraceUploader(Protocol):
    async def upload(self, artifact: UploadArtifact) -> None:
        ...


class LoggingUploader:

    def __init__(self):
        self.artifacts: List[UploadArtifact] = []

    async def upload(self, artifact: UploadArtifact) -> None:
        self.artifacts.append(artifact)
        logger.info(
            f"[LoggingUploader] Trace {artifact.trace_file_path} ready: "
            f"{len(artifact.validated_samples)} samples, valid={artifact.is_trace_valid}, "
            f"source={artifact.source}"
        )
