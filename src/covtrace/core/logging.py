"""Structured logging for coverage sessions.

Events go through structlog into stdlib handlers, one per configured output,
each with its own level and renderer. While a session runs, every event
carries its ``session_id``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from covtrace.config.models import LoggingConfig, LogOutputConfig

SESSION_ID_KEY = "session_id"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
]


def set_session_id(session_id: str | None = None) -> str:
    """Tag every following event with ``session_id``, generating one if needed."""
    sid = session_id or uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(**{SESSION_ID_KEY: sid})
    return sid


def clear_session_id() -> None:
    structlog.contextvars.unbind_contextvars(SESSION_ID_KEY)


def configure_logging(config: LoggingConfig | None = None, *, level: str | None = None) -> None:
    """Route structlog through one stdlib handler per configured output.

    Args:
        config: Levels and outputs; defaults to console output on stderr.
        level: Overrides ``config.level`` (the CLI's ``--verbose``).
    """
    from covtrace.config.models import LoggingConfig

    config = config or LoggingConfig()
    root_level = _LEVELS.get((level or config.level).upper(), logging.INFO)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # reconfiguring must take effect on loggers created at import time
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.setLevel(root_level)

    for output in config.outputs:
        handler = _create_handler(output.destination)
        # an explicit override applies to every output
        output_level = level or output.level or config.level
        handler.setLevel(_LEVELS.get(output_level.upper(), root_level))
        handler.setFormatter(_formatter(output))
        root_logger.addHandler(handler)


def _create_handler(destination: str) -> logging.Handler:
    if destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _formatter(output: LogOutputConfig) -> logging.Formatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        is_console = output.destination in ("stderr", "stdout")
        renderer = structlog.dev.ConsoleRenderer(
            colors=is_console and sys.stderr.isatty(),
            pad_event_to=0,
            pad_level=False,
        )
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=_SHARED_PROCESSORS,
    )
