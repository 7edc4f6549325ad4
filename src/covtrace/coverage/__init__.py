"""Coverage results, merging and summaries.

Usage:
    from covtrace.coverage import merge_results, tally, build_summary

    # Combine a session result with counts from a native profiler
    merged = merge_results(session_result, native_counts)

    # Per-file view and structured summary
    summary = build_summary(tally(merged))
"""

from covtrace.coverage.merge import merge_results, tally
from covtrace.coverage.models import (
    CoverageReport,
    CoverageResult,
    CoverageSummary,
    FileCoverage,
)
from covtrace.coverage.report import (
    build_summary,
    build_text_summary,
    compute_file_stats,
    file_rows,
)

__all__ = [
    # Models
    "CoverageReport",
    "CoverageResult",
    "CoverageSummary",
    "FileCoverage",
    # Merge
    "merge_results",
    "tally",
    # Report
    "build_summary",
    "build_text_summary",
    "compute_file_stats",
    "file_rows",
]
