"""Core module exports."""

from covtrace.core.errors import (
    CaptureFailure,
    ConfigError,
    CovtraceError,
    ErrorCode,
    InternalError,
    SessionActiveError,
    SwapFailure,
    UndeclaredCounterError,
    UnsupportedSyntaxKind,
)
from covtrace.core.logging import clear_session_id, configure_logging, set_session_id

__all__ = [
    # Errors
    "CaptureFailure",
    "ConfigError",
    "CovtraceError",
    "ErrorCode",
    "InternalError",
    "SessionActiveError",
    "SwapFailure",
    "UndeclaredCounterError",
    "UnsupportedSyntaxKind",
    # Logging
    "clear_session_id",
    "configure_logging",
    "set_session_id",
]
