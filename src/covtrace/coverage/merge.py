"""Combining coverage results.

Merge contract: every producer (the session here, or a native-code profiler
run alongside it) emits ``file:location -> count`` entries in the same key
shape. Merging is a plain union; counts for a key present in several results
are added, since each result counts separate executions.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from covtrace.coverage.models import CoverageReport, CoverageResult, FileCoverage
from covtrace.tracing.keys import parse_key


def merge_results(*results: Mapping[str, int]) -> CoverageResult:
    """Union of several results, summing counts of identical keys."""
    merged = CoverageResult()
    for result in results:
        for key, count in result.items():
            merged[key] = merged.get(key, 0) + count
    return merged


def tally(results: Mapping[str, int] | Iterable[Mapping[str, int]]) -> CoverageReport:
    """Fold one or more results into a per-file report.

    Args:
        results: A single result or several; several are merged first.

    Returns:
        CoverageReport with one FileCoverage per file named in the keys.
    """
    if isinstance(results, Mapping):
        source_format = "covtrace"
        merged: Mapping[str, int] = results
    else:
        source_format = "merged"
        merged = merge_results(*results)

    files: dict[str, FileCoverage] = {}
    for key in sorted(merged):
        count = merged[key]
        filename, lineno, *_ = parse_key(key)
        fc = files.get(filename)
        if fc is None:
            fc = files[filename] = FileCoverage(path=filename)
        fc.statements[key] = count
        fc.lines[lineno] = max(fc.lines.get(lineno, 0), count)

    return CoverageReport(source_format=source_format, files=files)
