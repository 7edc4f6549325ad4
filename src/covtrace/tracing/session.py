"""Coverage sessions.

A session measures one scope against a sequence of tests:

1. open the counter store (fails if another session holds it)
2. enumerate candidate bindings and snapshot each, skipping the ones that
   cannot be instrumented
3. swap every instrumented twin in
4. run the tests in order, all against one evaluation context
5. read the counts, close the store, restore every binding

Steps 3-5 are guarded so restoration happens on every exit path. An exception
raised by a test propagates unchanged once restoration is done; the counts
gathered up to that point stay available on ``session.result``.
"""

from __future__ import annotations

import builtins
import sys
from collections.abc import Callable, Hashable, Iterable, Sequence
from types import CodeType, FunctionType
from typing import Any

import structlog

from covtrace.config.models import TracingConfig
from covtrace.core.errors import CaptureFailure, CovtraceError, UnsupportedSyntaxKind
from covtrace.core.logging import clear_session_id, set_session_id
from covtrace.coverage.models import CoverageResult
from covtrace.tracing.counters import CounterStore
from covtrace.tracing.scopes import (
    DispatchScope,
    Scope,
    as_scope,
    dispatcher_of,
    iter_bindings,
)
from covtrace.tracing.snapshot import CallableSnapshot, swapped

log = structlog.get_logger(__name__)

TestExpression = Callable[[], Any] | str | CodeType
"""A thunk, Python source to exec, or a compiled code object."""

Candidate = tuple[Scope, Hashable, Any]

_TEST_FILENAME = "<covtrace-test>"


class CoverageSession:
    """One bounded measurement run over a scope."""

    def __init__(
        self,
        store: CounterStore | None = None,
        config: TracingConfig | None = None,
    ) -> None:
        self.store = store if store is not None else CounterStore()
        self.config = config or TracingConfig()
        self.snapshots: list[CallableSnapshot] = []
        self.skipped: list[tuple[str, CovtraceError]] = []
        self.result: CoverageResult | None = None

    def run(
        self,
        scope: Any,
        tests: Iterable[TestExpression],
        context: dict[str, Any] | None = None,
        *,
        names: Sequence[Hashable] | None = None,
    ) -> CoverageResult:
        """Measure ``scope`` while running ``tests``.

        Args:
            scope: Module, class, dict, singledispatch function or Scope.
            tests: Thunks, source strings or code objects, run in order.
            context: Globals for source strings and code objects. Defaults to
                a copy of the scope's bindings taken after swap-in.
            names: Restrict the session to these bindings. Capture failures
                for named bindings propagate instead of being skipped.

        Returns:
            Counts for every statement instrumented in this session.
        """
        target = as_scope(scope)
        tests = list(tests)
        self.snapshots = []
        self.skipped = []
        self.result = None

        self.store.open()
        set_session_id()
        log.info("session.started", scope=target.label, tests=len(tests))
        try:
            self.snapshots = self._capture(target, names)
            with swapped(self.snapshots):
                namespace = context if context is not None else _default_context(target)
                for test in tests:
                    _evaluate(test, namespace)
        finally:
            self.result = CoverageResult(self.store.snapshot())
            self.store.close()
            log.info(
                "session.finished",
                statements=len(self.result),
                bindings=len(self.snapshots),
                skipped=len(self.skipped),
            )
            clear_session_id()
        return self.result

    def _candidates(self, target: Scope, names: Sequence[Hashable] | None) -> list[Candidate]:
        if names is None:
            return list(
                iter_bindings(
                    target,
                    include_classes=self.config.include_classes,
                    include_dispatch=self.config.include_dispatch,
                    owned_only=self.config.owned_only,
                )
            )

        candidates: list[Candidate] = []
        for name in names:
            value = target.lookup(name)
            dispatcher = dispatcher_of(value)
            if dispatcher is not None:
                candidates.extend(iter_bindings(DispatchScope(dispatcher), owned_only=False))
            else:
                candidates.append((target, name, value))
        return candidates

    def _capture(self, target: Scope, names: Sequence[Hashable] | None) -> list[CallableSnapshot]:
        snapshots = []
        for owner, name, value in self._candidates(target, names):
            try:
                snapshots.append(CallableSnapshot.capture(owner, name, self.store, value))
            except (CaptureFailure, UnsupportedSyntaxKind) as e:
                if names is not None:
                    raise
                self.skipped.append((f"{owner.label}:{name}", e))
                log.debug("capture.skipped", scope=owner.label, name=str(name), error=e.error_name)
        return snapshots


def _default_context(scope: Scope) -> dict[str, Any]:
    namespace: dict[str, Any] = {"__builtins__": builtins}
    for name in scope.names():
        if isinstance(name, str):
            namespace[name] = scope.lookup(name)
    return namespace


def _evaluate(test: TestExpression, namespace: dict[str, Any]) -> None:
    if isinstance(test, str):
        exec(compile(test, _TEST_FILENAME, "exec"), namespace)
    elif isinstance(test, CodeType):
        exec(test, namespace)
    elif callable(test):
        test()
    else:
        raise TypeError(f"Cannot run {type(test).__name__} as a test expression")


def environment_coverage(
    scope: Any,
    *tests: TestExpression,
    context: dict[str, Any] | None = None,
    config: TracingConfig | None = None,
) -> CoverageResult:
    """Coverage of every function in ``scope`` while running ``tests``."""
    return CoverageSession(config=config).run(scope, tests, context)


def function_coverage(
    target: FunctionType | str,
    *tests: TestExpression,
    scope: Any = None,
    context: dict[str, Any] | None = None,
) -> CoverageResult:
    """Coverage of a single function while running ``tests``.

    ``target`` is the function itself, whose defining module or class is
    found from its qualified name, or a binding name looked up in ``scope``.
    """
    owner, name = _resolve_binding(target, scope)
    return CoverageSession().run(owner, tests, context, names=[name])


def _resolve_binding(target: FunctionType | str, scope: Any) -> tuple[Scope, str]:
    if isinstance(target, str):
        if scope is None:
            raise TypeError("scope is required when the target is given by name")
        return as_scope(scope), target

    if scope is not None:
        return as_scope(scope), target.__name__

    *path, name = target.__qualname__.split(".")
    if "<locals>" in path:
        raise TypeError(f"{target.__qualname__} is a local function; pass its scope explicitly")
    owner: Any = sys.modules[target.__module__]
    for part in path:
        owner = getattr(owner, part)
    return as_scope(owner), name
