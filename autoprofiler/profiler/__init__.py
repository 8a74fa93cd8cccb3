from .trace_control import TraceControl, FileTraceControl
from .uploader import TraceUploader, LoggingUploader
from .provider import ProfilerProvider, CaptureSession, TRACE_FILE_EXTENSION

__all__ = [
    "TraceControl",
    "FileTraceControl",
    "TraceUploader",
    "LoggingUploader",
    "ProfilerProvider",
    "CaptureSession",
    "TRACE_FILE_EXTENSION",
]
