"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (COVTRACE__SECTION__KEY)
3. Project YAML (covtrace.yaml)
4. Global YAML (~/.config/covtrace/config.yaml)
5. Built-in defaults (this file)

Examples:
    COVTRACE__LOGGING__LEVEL=DEBUG
    COVTRACE__TRACING__INCLUDE_CLASSES=false
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        COVTRACE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every skipped binding.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class TracingConfig(BaseModel):
    """Which bindings a coverage session instruments.

    Env vars:
        COVTRACE__TRACING__INCLUDE_CLASSES: Descend into classes defined in the scope
        COVTRACE__TRACING__INCLUDE_DISPATCH: Expand singledispatch registries
        COVTRACE__TRACING__OWNED_ONLY: Skip functions imported from other modules
    """

    include_classes: bool = Field(
        default=True,
        description="Instrument methods of classes defined in the target module.",
    )
    include_dispatch: bool = Field(
        default=True,
        description="Instrument every implementation registered on a singledispatch function.",
    )
    owned_only: bool = Field(
        default=True,
        description="Only instrument functions whose __module__ is the target scope. "
        "Disabling this instruments imported functions in place as well.",
    )


class CovtraceConfig(BaseModel):
    """Root configuration for covtrace."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
