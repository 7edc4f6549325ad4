"""covtrace error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Instrumentation
- 4xxx: Capture / swap
- 5xxx: Session
- 9xxx: Internal

Errors raised by test code during a session are never wrapped: they reach the
caller unchanged once every swapped binding has been restored.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Instrumentation (3xxx)
    UNSUPPORTED_SYNTAX_KIND = 3001

    # Capture / swap (4xxx)
    CAPTURE_NOT_INSTRUMENTABLE = 4001
    CAPTURE_SOURCE_UNAVAILABLE = 4002
    CAPTURE_DEFINITION_NOT_FOUND = 4003
    CAPTURE_CLOSURE_MISMATCH = 4004
    CAPTURE_COPY_FAILED = 4005
    CAPTURE_WRAPPED_UNREACHABLE = 4006
    SWAP_FAILED = 4101

    # Session (5xxx)
    SESSION_ACTIVE = 5001
    COUNTER_UNDECLARED = 5002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(eq=False)
class CovtraceError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CAPTURE_COPY_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CovtraceError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class UnsupportedSyntaxKind(CovtraceError):
    """A syntax node outside the known variant set was met while instrumenting.

    Fatal to the one definition being instrumented, not to the session.
    """

    @classmethod
    def for_node(cls, node: object) -> "UnsupportedSyntaxKind":
        kind = type(node).__qualname__
        return cls(
            code=ErrorCode.UNSUPPORTED_SYNTAX_KIND,
            message=f"Unknown syntax node kind: {kind}",
            details={"kind": kind},
        )


class CaptureFailure(CovtraceError):
    """A candidate binding could not be snapshotted; the session skips it."""

    @classmethod
    def not_instrumentable(cls, name: str, value: object) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_NOT_INSTRUMENTABLE,
            message=f"'{name}' is not a Python function ({type(value).__name__})",
            details={"name": name, "type": type(value).__name__},
        )

    @classmethod
    def source_unavailable(cls, name: str, reason: str) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_SOURCE_UNAVAILABLE,
            message=f"No source for '{name}': {reason}",
            details={"name": name, "reason": reason},
        )

    @classmethod
    def definition_not_found(cls, name: str, path: str, line: int) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_DEFINITION_NOT_FOUND,
            message=f"Could not locate a unique definition of '{name}' at {path}:{line}",
            details={"name": name, "path": path, "line": line},
        )

    @classmethod
    def closure_mismatch(cls, name: str, free_name: str) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_CLOSURE_MISMATCH,
            message=f"Rebuilt '{name}' needs free variable '{free_name}' the original lacks",
            details={"name": name, "free_name": free_name},
        )

    @classmethod
    def copy_failed(cls, name: str, reason: str) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_COPY_FAILED,
            message=f"Could not copy '{name}': {reason}",
            details={"name": name, "reason": reason},
        )

    @classmethod
    def wrapped_unreachable(cls, name: str) -> "CaptureFailure":
        return cls(
            code=ErrorCode.CAPTURE_WRAPPED_UNREACHABLE,
            message=f"'{name}' wraps a function that its closure does not hold",
            details={"name": name},
        )


class SwapFailure(CovtraceError):
    """Rebinding a name failed. Fatal to the session."""

    @classmethod
    def rebind_failed(cls, scope: str, name: str, reason: str) -> "SwapFailure":
        return cls(
            code=ErrorCode.SWAP_FAILED,
            message=f"Could not rebind '{name}' in {scope}: {reason}",
            details={"scope": scope, "name": name, "reason": reason},
        )


class SessionActiveError(CovtraceError):
    """A second session tried to use a counter store that is already in use."""

    @classmethod
    def already_active(cls) -> "SessionActiveError":
        return cls(
            code=ErrorCode.SESSION_ACTIVE,
            message="A coverage session is already active on this counter store",
        )


class UndeclaredCounterError(CovtraceError):
    """An instrumented statement incremented a counter that was never declared."""

    @classmethod
    def for_key(cls, key: str) -> "UndeclaredCounterError":
        return cls(
            code=ErrorCode.COUNTER_UNDECLARED,
            message=f"Counter was never declared: {key}",
            details={"key": key},
        )


class InternalError(CovtraceError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
