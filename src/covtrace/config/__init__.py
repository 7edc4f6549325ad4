"""Config module exports."""

from covtrace.config.loader import load_config
from covtrace.config.models import (
    CovtraceConfig,
    LoggingConfig,
    LogOutputConfig,
    TracingConfig,
)

__all__ = [
    "load_config",
    "CovtraceConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "TracingConfig",
]
