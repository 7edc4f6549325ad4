"""Structured coverage summaries.

Output schema for build_summary:
{
    "summary": {
        "total_files": int,
        "covered_files": int,
        "total_statements": int,
        "covered_statements": int,
        "statement_coverage_percent": float,
        "total_lines": int,
        "covered_lines": int,
        "line_coverage_percent": float
    },
    "files": [
        {
            "path": str,
            "total_statements": int,
            "covered_statements": int,
            "coverage_percent": float,
            "missed_lines": [int, ...]
        },
        ...
    ],
    "source_format": str
}
"""

from typing import Any

from covtrace.core.formatting import compress_path, pluralize
from covtrace.coverage.models import CoverageReport


def compute_file_stats(report: CoverageReport) -> list[dict[str, Any]]:
    """Per-file statistics, sorted by path."""
    file_stats = []

    for path in sorted(report.files.keys()):
        fc = report.files[path]
        total = fc.statements_found
        covered = fc.statements_hit
        coverage_percent = (covered / total * 100.0) if total > 0 else 100.0

        file_stats.append(
            {
                "path": path,
                "total_statements": total,
                "covered_statements": covered,
                "coverage_percent": round(coverage_percent, 2),
                "missed_lines": fc.uncovered_lines,
            }
        )

    return file_stats


def build_summary(
    report: CoverageReport,
    *,
    include_files: bool = True,
    max_files: int | None = None,
    max_missed_lines: int = 20,
) -> dict[str, Any]:
    """Build a structured coverage summary from a report.

    Args:
        report: The coverage report to summarize.
        include_files: Whether to include per-file details.
        max_files: Limit number of files (lowest coverage first). None = all.
        max_missed_lines: Max missed lines to list per file.

    Returns:
        Structured dict suitable for JSON serialization.
    """
    summary = report.summary
    covered_files = sum(
        1
        for fc in report.files.values()
        if fc.statements and all(hits > 0 for hits in fc.statements.values())
    )

    result: dict[str, Any] = {
        "summary": {
            "total_files": len(report.files),
            "covered_files": covered_files,
            "total_statements": summary.statements_found,
            "covered_statements": summary.statements_hit,
            "statement_coverage_percent": _percent(
                summary.statements_hit, summary.statements_found
            ),
            "total_lines": summary.lines_found,
            "covered_lines": summary.lines_hit,
            "line_coverage_percent": _percent(summary.lines_hit, summary.lines_found),
        },
        "source_format": report.source_format,
    }

    if include_files:
        file_stats = compute_file_stats(report)

        # Sort by coverage percent (lowest first) to surface problem areas
        file_stats.sort(key=lambda f: f["coverage_percent"])

        if max_files is not None:
            file_stats = file_stats[:max_files]

        for fs in file_stats:
            missed = fs["missed_lines"]
            if len(missed) > max_missed_lines:
                fs["missed_lines"] = missed[:max_missed_lines]
                fs["missed_lines_truncated"] = True

        result["files"] = file_stats

    return result


def build_text_summary(report: CoverageReport) -> str:
    """One-line summary for display contexts."""
    summary = report.summary
    if summary.statements_found == 0:
        return "No coverage data"

    percent = summary.statements_hit / summary.statements_found * 100.0
    files = pluralize(len(report.files), "file")
    return (
        f"Coverage: {percent:.1f}% "
        f"({summary.statements_hit}/{pluralize(summary.statements_found, 'statement')}"
        f" in {files})"
    )


def file_rows(report: CoverageReport) -> list[tuple[str, str, str]]:
    """``(path, percent, missed lines)`` rows for tabular display."""
    rows = []
    for stats in compute_file_stats(report):
        missed = stats["missed_lines"]
        missed_text = ", ".join(str(line) for line in missed[:10])
        if len(missed) > 10:
            missed_text += f", +{len(missed) - 10} more"
        rows.append((compress_path(stats["path"], 40), f"{stats['coverage_percent']:.1f}%", missed_text))
    return rows


def _percent(hit: int, found: int) -> float:
    return round(hit / found * 100.0, 2) if found > 0 else 100.0
