"""Summary formatting utilities for consistent terminal output.

Design principles:
- Every summary fits on one line (~80 chars max)
- Paths compressed for deep nesting
- Grammatically correct (1 file vs 2 files)
"""

from __future__ import annotations


def compress_path(path: str, max_len: int = 30) -> str:
    """Compress path to fit within max_len.

    Examples:
        src/covtrace/tracing/instrument.py -> src/.../instrument.py
        short/path.py -> short/path.py (unchanged)
    """
    if len(path) <= max_len:
        return path

    parts = path.split("/")
    if len(parts) <= 2:
        return path  # Can't compress further

    compressed = f"{parts[0]}/.../{parts[-1]}"
    if len(compressed) <= max_len:
        return compressed

    return parts[-1]


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return grammatically correct singular/plural form.

    Examples:
        pluralize(1, "statement") -> "1 statement"
        pluralize(3, "file") -> "3 files"
    """
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"
