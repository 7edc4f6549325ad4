"""Execution counters keyed by source location.

A store is owned by one coverage session at a time. Instrumented code holds a
reference to the store's ``increment`` method through a closure cell, so the
counts of every instrumented statement end up here regardless of call depth.
There is no locking: sessions must not overlap, and ``open`` refuses to start
a second one on a store that is still active.
"""

from __future__ import annotations

from collections.abc import Iterator

from covtrace.core.errors import SessionActiveError, UndeclaredCounterError


class CounterStore:
    """Mapping from source key to a non-negative execution count."""

    __slots__ = ("_counts", "_active")

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def open(self) -> None:
        """Start a session on this store with a clean slate."""
        if self._active:
            raise SessionActiveError.already_active()
        self.reset()
        self._active = True

    def close(self) -> None:
        """End the session and drop every counter."""
        self.reset()
        self._active = False

    def reset(self) -> None:
        self._counts.clear()

    def declare(self, key: str) -> None:
        """Ensure ``key`` exists; an existing count is left as is."""
        self._counts.setdefault(key, 0)

    def increment(self, key: str) -> None:
        try:
            self._counts[key] += 1
        except KeyError:
            raise UndeclaredCounterError.for_key(key) from None

    def snapshot(self) -> dict[str, int]:
        """Copy of the current counts."""
        return dict(self._counts)

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)
