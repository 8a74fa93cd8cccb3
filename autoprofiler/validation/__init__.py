from .trace import TraceEvent, TraceLog, TraceEventWriter
from .validators import (
    TraceValidator,
    TraceValidationContext,
    ConvertTraceValidator,
    ActivityListValidator,
    AlwaysPassValidator,
)
from .chain import TraceValidationChain, TraceValidatorFactory, ValidationResult
from .upload_context import UploadArtifact, UploadContextValidator

__all__ = [
    "TraceEvent",
    "TraceLog",
    "TraceEventWriter",
    "TraceValidator",
    "TraceValidationContext",
    "ConvertTraceValidator",
    "ActivityListValidator",
    "AlwaysPassValidator",
    "TraceValidationChain",
    "TraceValidatorFactory",
    "ValidationResult",
    "UploadArtifact",
    "UploadContextValidator",
]
