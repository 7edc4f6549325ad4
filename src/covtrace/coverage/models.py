"""Coverage data model.

A session returns a ``CoverageResult``: source key -> execution count, tagged
so reporting layers can tell it apart from an arbitrary mapping. ``tally``
(see merge.py) folds it into the file-centric ``CoverageReport``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from covtrace.tracing.keys import parse_key


class CoverageResult(dict[str, int]):
    """Statement counts keyed by ``file:line:col:end_line:end_col``."""

    kind: ClassVar[str] = "coverage"

    def counts_by_file(self) -> dict[str, dict[str, int]]:
        """Group the counts by the file part of each key."""
        grouped: dict[str, dict[str, int]] = {}
        for key, count in self.items():
            filename = parse_key(key)[0]
            grouped.setdefault(filename, {})[key] = count
        return grouped

    def __repr__(self) -> str:
        return f"CoverageResult({dict.__repr__(self)})"


@dataclass(slots=True)
class FileCoverage:
    """Coverage data for a single file.

    ``statements`` holds the raw counts; ``lines`` maps each 1-based line
    number to the highest count of any statement starting on it.
    """

    path: str
    statements: dict[str, int] = field(default_factory=dict)
    lines: dict[int, int] = field(default_factory=dict)

    @property
    def statements_found(self) -> int:
        return len(self.statements)

    @property
    def statements_hit(self) -> int:
        return sum(1 for hits in self.statements.values() if hits > 0)

    @property
    def lines_found(self) -> int:
        """Total number of lines holding a traced statement."""
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        """Number of lines with at least one hit."""
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def line_rate(self) -> float:
        """Fraction of lines covered (0.0 to 1.0)."""
        if not self.lines:
            return 0.0
        return self.lines_hit / len(self.lines)

    @property
    def uncovered_lines(self) -> list[int]:
        """Sorted list of line numbers with zero hits."""
        return sorted(line for line, hits in self.lines.items() if hits == 0)


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics."""

    statements_found: int
    statements_hit: int
    lines_found: int
    lines_hit: int
    statement_rate: float
    line_rate: float


@dataclass(slots=True)
class CoverageReport:
    """Per-file view of one or more results, keyed by path."""

    source_format: str  # "covtrace", or "merged" when built from several sources
    files: dict[str, FileCoverage] = field(default_factory=dict)

    @property
    def summary(self) -> CoverageSummary:
        statements_found = sum(f.statements_found for f in self.files.values())
        statements_hit = sum(f.statements_hit for f in self.files.values())
        lines_found = sum(f.lines_found for f in self.files.values())
        lines_hit = sum(f.lines_hit for f in self.files.values())

        return CoverageSummary(
            statements_found=statements_found,
            statements_hit=statements_hit,
            lines_found=lines_found,
            lines_hit=lines_hit,
            statement_rate=statements_hit / statements_found if statements_found > 0 else 0.0,
            line_rate=lines_hit / lines_found if lines_found > 0 else 0.0,
        )
