"""covtrace - statement coverage by syntax tree instrumentation.

Usage:
    import covtrace
    import mypkg.shapes

    result = covtrace.environment_coverage(mypkg.shapes, "area(square(2))")
    print(covtrace.build_text_summary(covtrace.tally(result)))
"""

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
from covtrace.coverage import (
    CoverageReport,
    CoverageResult,
    build_summary,
    build_text_summary,
    merge_results,
    tally,
)
from covtrace.tracing import CounterStore, Instrumenter, source_key
from covtrace.tracing.session import CoverageSession, environment_coverage, function_coverage

__version__ = "0.1.0"

__all__ = [
    # Sessions
    "CoverageSession",
    "environment_coverage",
    "function_coverage",
    # Building blocks
    "CounterStore",
    "Instrumenter",
    "source_key",
    # Results
    "CoverageReport",
    "CoverageResult",
    "build_summary",
    "build_text_summary",
    "merge_results",
    "tally",
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
]
