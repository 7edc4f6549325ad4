"""Source location keys.

Every traceable statement is identified by a string built from the file it was
parsed from and the coordinates ``ast`` attached to it::

    /src/pkg/mod.py:12:4:12:17

Keys are stable across repeated parses of the same file, which is what lets
counts accumulate over several test expressions in one session. Native
profilers that report ``file:location -> count`` can be merged with them
directly (see ``covtrace.coverage.merge``).
"""

from __future__ import annotations

import ast
from dataclasses import dataclass

UNKNOWN_FILE = "<unknown>"
KEY_SEPARATOR = ":"


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """File identity plus coordinates of one parsed node."""

    filename: str | None
    lineno: int
    col_offset: int
    end_lineno: int
    end_col_offset: int

    @classmethod
    def of(cls, node: ast.AST, filename: str | None) -> SourcePosition | None:
        """Position of ``node``, or None for synthetic nodes without one."""
        lineno = getattr(node, "lineno", None)
        if lineno is None:
            return None
        end_lineno = getattr(node, "end_lineno", None)
        end_col_offset = getattr(node, "end_col_offset", None)
        return cls(
            filename=filename,
            lineno=lineno,
            col_offset=getattr(node, "col_offset", 0),
            end_lineno=lineno if end_lineno is None else end_lineno,
            end_col_offset=-1 if end_col_offset is None else end_col_offset,
        )


def source_key(position: SourcePosition) -> str:
    """Canonical counter key for a position."""
    filename = position.filename or UNKNOWN_FILE
    return KEY_SEPARATOR.join(
        [
            filename,
            str(position.lineno),
            str(position.col_offset),
            str(position.end_lineno),
            str(position.end_col_offset),
        ]
    )


def parse_key(key: str) -> tuple[str, int, int, int, int]:
    """Split a key back into ``(filename, lineno, col, end_lineno, end_col)``.

    Filenames may themselves contain the separator (Windows drives), so the
    coordinates are taken from the right.
    """
    filename, lineno, col, end_lineno, end_col = key.rsplit(KEY_SEPARATOR, 4)
    return filename, int(lineno), int(col), int(end_lineno), int(end_col)
