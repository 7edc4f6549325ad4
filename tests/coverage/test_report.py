"""Tests for coverage/report.py module."""

from covtrace.coverage.merge import tally
from covtrace.coverage.models import CoverageReport
from covtrace.coverage.report import (
    build_summary,
    build_text_summary,
    compute_file_stats,
    file_rows,
)

RESULT = {
    "src/a.py:1:0:1:5": 2,
    "src/a.py:2:0:2:5": 0,
    "src/a.py:3:0:3:5": 1,
    "src/b.py:1:0:1:5": 1,
}


class TestComputeFileStats:
    """Per-file statistics."""

    def test_sorted_by_path(self) -> None:
        stats = compute_file_stats(tally(RESULT))

        assert [s["path"] for s in stats] == ["src/a.py", "src/b.py"]

    def test_values(self) -> None:
        stats = compute_file_stats(tally(RESULT))[0]

        assert stats["total_statements"] == 3
        assert stats["covered_statements"] == 2
        assert stats["coverage_percent"] == 66.67
        assert stats["missed_lines"] == [2]


class TestBuildSummary:
    """Structured summary."""

    def test_totals(self) -> None:
        summary = build_summary(tally(RESULT))

        assert summary["summary"] == {
            "total_files": 2,
            "covered_files": 1,
            "total_statements": 4,
            "covered_statements": 3,
            "statement_coverage_percent": 75.0,
            "total_lines": 4,
            "covered_lines": 3,
            "line_coverage_percent": 75.0,
        }
        assert summary["source_format"] == "covtrace"

    def test_files_lowest_coverage_first(self) -> None:
        summary = build_summary(tally(RESULT))

        assert [f["path"] for f in summary["files"]] == ["src/a.py", "src/b.py"]

    def test_without_files(self) -> None:
        summary = build_summary(tally(RESULT), include_files=False)

        assert "files" not in summary

    def test_max_files(self) -> None:
        summary = build_summary(tally(RESULT), max_files=1)

        assert len(summary["files"]) == 1

    def test_missed_lines_truncated(self) -> None:
        result = {f"m.py:{line}:0:{line}:5": 0 for line in range(1, 31)}

        summary = build_summary(tally(result), max_missed_lines=5)

        file_entry = summary["files"][0]
        assert file_entry["missed_lines"] == [1, 2, 3, 4, 5]
        assert file_entry["missed_lines_truncated"] is True

    def test_empty_report(self) -> None:
        summary = build_summary(CoverageReport(source_format="covtrace"))

        assert summary["summary"]["statement_coverage_percent"] == 100.0
        assert summary["files"] == []


class TestTextSummary:
    """One-line summaries and table rows."""

    def test_text_summary(self) -> None:
        assert build_text_summary(tally(RESULT)) == "Coverage: 75.0% (3/4 statements in 2 files)"

    def test_single_file(self) -> None:
        text = build_text_summary(tally({"a.py:1:0:1:5": 1}))

        assert text == "Coverage: 100.0% (1/1 statement in 1 file)"

    def test_no_data(self) -> None:
        assert build_text_summary(CoverageReport(source_format="covtrace")) == "No coverage data"

    def test_file_rows(self) -> None:
        rows = file_rows(tally(RESULT))

        assert rows == [("src/a.py", "66.7%", "2"), ("src/b.py", "100.0%", "")]

    def test_file_rows_truncate_missed_lines(self) -> None:
        result = {f"m.py:{line}:0:{line}:5": 0 for line in range(1, 13)}

        rows = file_rows(tally(result))

        assert rows[0][2] == "1, 2, 3, 4, 5, 6, 7, 8, 9, 10, +2 more"
