"""Snapshots of callable bindings and the swap that puts instrumented twins live.

Lifecycle of one binding::

    ORIGINAL --swap_in--> INSTRUMENTED --swap_out--> RESTORED

``swap_out`` is reachable from every state and does not look at the live
value: it writes the recorded copy's state back onto the original function
and rebinds the name to the original object. Sessions drive it through
``swapped()``, which runs it on every exit path.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from enum import Enum
from types import CellType, FunctionType
from typing import Any

import structlog

from covtrace.core.errors import CaptureFailure, SwapFailure
from covtrace.tracing.counters import CounterStore
from covtrace.tracing.rebuild import (
    copy_function_attributes,
    detach_counter,
    instrument_function,
    unwrap_wrapped,
)
from covtrace.tracing.scopes import Scope, unwrap_method

log = structlog.get_logger(__name__)


class SnapshotState(Enum):
    ORIGINAL = "original"
    INSTRUMENTED = "instrumented"
    RESTORED = "restored"


def clone_function(func: FunctionType) -> FunctionType:
    """Independent copy of ``func``: new function object, copied attribute containers.

    Code, globals and closure cells are shared; they are what the function *is*.
    """
    clone = FunctionType(
        func.__code__, func.__globals__, func.__name__, func.__defaults__, func.__closure__
    )
    copy_function_attributes(func, clone)
    return clone


def restore_function(func: FunctionType, clone: FunctionType) -> None:
    """Write the state recorded in ``clone`` back onto ``func``."""
    func.__code__ = clone.__code__
    func.__defaults__ = clone.__defaults__
    copy_function_attributes(clone, func)


def _rewrap(original: Any, function: FunctionType) -> Any:
    if isinstance(original, staticmethod | classmethod):
        return type(original)(function)
    return function


@dataclass(slots=True)
class CallableSnapshot:
    """One binding, its original value and the instrumented value to swap in."""

    scope: Scope
    name: Hashable
    original: Any
    function: FunctionType
    original_copy: FunctionType
    instrumented: Any
    cell: CellType | None = None
    state: SnapshotState = SnapshotState.ORIGINAL

    @classmethod
    def capture(
        cls,
        scope: Scope,
        name: Hashable,
        store: CounterStore,
        value: Any = None,
    ) -> CallableSnapshot:
        """Snapshot ``name`` in ``scope`` and build its instrumented twin.

        For a ``functools.wraps`` wrapper the twin replaces the wrapped
        function inside the wrapper's closure; the binding itself stays.

        Raises:
            CaptureFailure: The value is not a Python function, its wrapped
                function is out of reach, or copying it failed.
            UnsupportedSyntaxKind: Its syntax tree could not be instrumented.
        """
        original = scope.lookup(name) if value is None else value
        function = unwrap_method(original)
        if not isinstance(function, FunctionType):
            raise CaptureFailure.not_instrumentable(str(name), original)
        function, cell = unwrap_wrapped(function)

        try:
            original_copy = clone_function(function)
        except Exception as e:
            raise CaptureFailure.copy_failed(function.__qualname__, str(e)) from e

        twin = instrument_function(function, store)
        return cls(
            scope=scope,
            name=name,
            original=original,
            function=function,
            original_copy=original_copy,
            instrumented=twin if cell is not None else _rewrap(original, twin),
            cell=cell,
        )

    @property
    def label(self) -> str:
        name = self.name.__qualname__ if isinstance(self.name, type) else str(self.name)
        return f"{self.scope.label}:{name}"

    def swap_in(self) -> None:
        try:
            if self.cell is not None:
                self.cell.cell_contents = self.instrumented
            else:
                self.scope.assign(self.name, self.instrumented)
        except Exception as e:
            raise SwapFailure.rebind_failed(self.scope.label, str(self.name), str(e)) from e
        self.state = SnapshotState.INSTRUMENTED

    def swap_out(self) -> None:
        if self.state is SnapshotState.RESTORED:
            return
        twin = unwrap_method(self.instrumented)
        if isinstance(twin, FunctionType):
            detach_counter(twin)
        try:
            restore_function(self.function, self.original_copy)
            if self.cell is not None:
                self.cell.cell_contents = self.function
            else:
                self.scope.assign(self.name, self.original)
        except Exception as e:
            raise SwapFailure.rebind_failed(self.scope.label, str(self.name), str(e)) from e
        self.state = SnapshotState.RESTORED


@contextmanager
def swapped(snapshots: Iterable[CallableSnapshot]) -> Iterator[list[CallableSnapshot]]:
    """Swap every snapshot in for the duration of the block.

    Swap-out is registered before each swap-in, so a failure part-way through
    still restores everything touched so far. Every registered swap-out runs
    even when the block or another swap-out raises.
    """
    with ExitStack() as stack:
        live: list[CallableSnapshot] = []
        for snapshot in snapshots:
            stack.callback(snapshot.swap_out)
            snapshot.swap_in()
            live.append(snapshot)
        log.debug("swap.in", bindings=len(live))
        yield live
    log.debug("swap.out", bindings=len(live))
