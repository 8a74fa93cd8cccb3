"""Module errors: structured error taxonomy for the profiling agent."""
#
# PURPOSE:
# Provides error codes and typed exceptions shared by the scheduler, the
# sample pipeline and the trace validation chain.
#
# ERROR CODE FORMAT:
# - CONFIG_XXX: Settings refresh errors
# - RESOURCE_XXX: Resource usage signal errors
# - CAPTURE_XXX: Capture primitive errors
# - SCHEDULE_XXX: Scheduling policy errors
# - VALIDATION_XXX: Trace validation errors
# - TRACE_XXX: Trace file errors
# - SYSTEM_XXX: Everything else
#
# USAGE:
#   from autoprofiler.errors import ProfilerError, ErrorCode
#
#   raise ProfilerError(
#       ErrorCode.CAPTURE_ALREADY_RUNNING,
#       "Cannot start a capture while another one is active",
#       details={"source": "MemoryMonitoringSchedulingPolicy"}
#   )
#
import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Config Errors
    CONFIG_STALE = "CONFIG_001"
    CONFIG_INVALID = "CONFIG_002"
    CONFIG_FILE_NOT_FOUND = "CONFIG_003"
    CONFIG_PARSE_ERROR = "CONFIG_004"

    # Resource Errors
    RESOURCE_SIGNAL_UNAVAILABLE = "RESOURCE_001"

    # Capture Errors
    CAPTURE_START_FAILED = "CAPTURE_001"
    CAPTURE_STOP_FAILED = "CAPTURE_002"
    CAPTURE_ALREADY_RUNNING = "CAPTURE_003"
    CAPTURE_NOT_RUNNING = "CAPTURE_004"

    # Schedule Errors
    SCHEDULE_EVALUATION_FAILED = "SCHEDULE_001"
    SCHEDULE_POLICY_NOT_REGISTERED = "SCHEDULE_002"

    # Validation Errors
    VALIDATION_FAILED = "VALIDATION_001"
    SAMPLES_INVALID = "VALIDATION_002"

    # Trace Errors
    TRACE_NOT_FOUND = "TRACE_001"
    TRACE_CORRUPT = "TRACE_002"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class ProfilerError(Exception):
    """
    Base exception class for the agent with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "CAPTURE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfilerError":
        code = ErrorCode(data["code"])
        return cls(code, data["message"], data.get("details", {}))


class ConfigurationStaleError(ProfilerError):
    """Settings refresh failed. The last known tunables stay in effect."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.CONFIG_STALE, message, details)


class ResourceSignalUnavailableError(ProfilerError):
    """Resource usage could not be read. Treated as below threshold."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.RESOURCE_SIGNAL_UNAVAILABLE, message, details)


class CaptureFailureError(ProfilerError):
    """The capture primitive failed to start or stop."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CAPTURE_START_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ValidationFailedError(ProfilerError):
    """
    Raised by a trace validator.

    should_stop_uploading tells the caller whether the trace is unusable.
    Only the caller of the chain decides what to do when it is False.
    """

    def __init__(
        self,
        validator_name: Optional[str],
        message: str,
        cause: Optional[BaseException] = None,
        should_stop_uploading: bool = False,
    ):
        self.validator_name = validator_name
        self.cause = cause
        self.should_stop_uploading = should_stop_uploading
        rendered = f"[{validator_name}] {message}" if validator_name else message
        super().__init__(
            ErrorCode.VALIDATION_FAILED,
            rendered,
            details={
                "validator": validator_name,
                "should_stop_uploading": should_stop_uploading,
                "cause": repr(cause) if cause else None,
            },
        )
        if cause is not None:
            self.__cause__ = cause


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(
    error: Exception,
    context: Optional[str] = None,
    code: Optional[ErrorCode] = None,
) -> ProfilerError:
    """
    Convert a generic exception to a ProfilerError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while reading meminfo")
        code: Use this code instead of the one derived from the exception type

    Returns:
        ProfilerError with appropriate code and message
    """
    if isinstance(error, ProfilerError):
        return error

    error_type = type(error).__name__

    if code is None:
        if isinstance(error, FileNotFoundError):
            code = ErrorCode.TRACE_NOT_FOUND
        elif isinstance(error, (ValueError, json.JSONDecodeError)):
            code = ErrorCode.TRACE_CORRUPT
        else:
            code = ErrorCode.SYSTEM_INTERNAL_ERROR

    message = str(error)
    if context:
        message = f"{context}: {message}"

    return ProfilerError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error),
        },
    )


__all__ = [
    "ErrorCode",
    "ProfilerError",
    "ConfigurationStaleError",
    "ResourceSignalUnavailableError",
    "CaptureFailureError",
    "ValidationFailedError",
    "handle_error",
]
