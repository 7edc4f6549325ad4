"""Syntax tree instrumentation.

The instrumenter rewrites a parsed definition so that every traceable
statement bumps its counter right before it runs::

    def f(x):                      def f(x):
        if x > 0:                      __covtrace_count__("m.py:2:4:5:17")
            return 1          ->       if x > 0:
        else:                              __covtrace_count__("m.py:3:8:3:16")
            return -1                      return 1
                                       else:
                                           __covtrace_count__("m.py:5:8:5:17")
                                           return -1

Lambda bodies are single expressions, so they are wrapped in place instead:
``lambda x: x * 2`` becomes ``lambda x: (__covtrace_count__(key), x * 2)[-1]``.

Whether a node gets a counter is decided by its position: statements carry
their own ``lineno``/``col_offset``, which is handed down as the *hint* when
the enclosing block is visited. Nodes without a position (synthetic nodes,
including the counters themselves) are never counted, only recursed into.
"""

from __future__ import annotations

import ast
from functools import singledispatchmethod
from types import EllipsisType, NoneType
from typing import Any

from covtrace.core.errors import UnsupportedSyntaxKind
from covtrace.tracing.counters import CounterStore
from covtrace.tracing.keys import SourcePosition, source_key

COUNTER_NAME = "__covtrace_count__"
"""Name instrumented code calls; bound through a closure cell at rebuild time."""


def is_counter_call(node: ast.AST) -> bool:
    """True for ``__covtrace_count__(...)`` calls inserted by the instrumenter."""
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id == COUNTER_NAME
    )


def _is_wrapped_expression(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Subscript)
        and isinstance(node.value, ast.Tuple)
        and len(node.value.elts) == 2
        and is_counter_call(node.value.elts[0])
    )


def _is_placeholder(node: ast.AST) -> bool:
    return isinstance(node, ast.Constant) and node.value is Ellipsis


def _is_traceable(node: ast.stmt) -> bool:
    """Statements that execute as code rather than declare or document."""
    if isinstance(node, ast.Global | ast.Nonlocal):
        return False
    if isinstance(node, ast.ImportFrom) and node.module == "__future__":
        return False
    if isinstance(node, ast.Expr):
        value = node.value
        if is_counter_call(value):
            return False
        # docstrings and `...` bodies
        if isinstance(value, ast.Constant) and (
            isinstance(value.value, str) or value.value is Ellipsis
        ):
            return False
    return True


class Instrumenter:
    """Inserts count-then-evaluate wrappers into a syntax tree.

    The tree is rewritten in place and returned; callers hand in a fresh parse.
    Every counter created is declared on ``store`` immediately so statements
    that never run still show up with a count of zero.
    """

    def __init__(self, store: CounterStore, filename: str | None = None) -> None:
        self.store = store
        self.filename = filename

    @singledispatchmethod
    def instrument(self, node: Any, hint: SourcePosition | None = None) -> Any:
        raise UnsupportedSyntaxKind.for_node(node)

    @instrument.register(str)
    @instrument.register(bytes)
    @instrument.register(int)
    @instrument.register(float)
    @instrument.register(complex)
    @instrument.register(NoneType)
    @instrument.register(EllipsisType)
    def _(self, node: Any, hint: SourcePosition | None = None) -> Any:
        return node

    @instrument.register
    def _(self, node: list, hint: SourcePosition | None = None) -> list[Any]:
        result: list[Any] = []
        counted = False
        for item in node:
            if isinstance(item, ast.stmt):
                # a statement right after its counter was instrumented already
                hint = None if counted else self._position(item)
                counted = isinstance(item, ast.Expr) and is_counter_call(item.value)
                traced = self.instrument(item, hint)
                if isinstance(traced, list):
                    result.extend(traced)
                    continue
            else:
                traced = self.instrument(item)
            result.append(traced)
        return result

    @instrument.register
    def _(self, node: ast.AST, hint: SourcePosition | None = None) -> Any:
        self._instrument_fields(node)
        return node

    @instrument.register
    def _(self, node: ast.stmt, hint: SourcePosition | None = None) -> Any:
        self._instrument_fields(node)
        return self._count_before(node, hint)

    @instrument.register(ast.FunctionDef)
    @instrument.register(ast.AsyncFunctionDef)
    def _(self, node: ast.FunctionDef | ast.AsyncFunctionDef, hint: SourcePosition | None = None) -> Any:
        # decorators, annotations and the name stay untouched
        node.args = self.instrument(node.args)
        node.body = self.instrument(node.body)
        return self._count_before(node, hint)

    @instrument.register
    def _(self, node: ast.arguments, hint: SourcePosition | None = None) -> ast.arguments:
        node.defaults = self.instrument(node.defaults)
        node.kw_defaults = self.instrument(node.kw_defaults)
        return node

    @instrument.register
    def _(self, node: ast.expr, hint: SourcePosition | None = None) -> ast.expr:
        if _is_wrapped_expression(node):
            return node
        self._instrument_fields(node)
        return self._wrap(node, hint)

    @instrument.register
    def _(self, node: ast.Lambda, hint: SourcePosition | None = None) -> ast.expr:
        node.args = self.instrument(node.args)
        node.body = self.instrument(node.body, self._position(node.body))
        return self._wrap(node, hint)

    @instrument.register(ast.Constant)
    @instrument.register(ast.Name)
    def _(self, node: ast.expr, hint: SourcePosition | None = None) -> ast.expr:
        if _is_placeholder(node):
            return node
        return self._wrap(node, hint)

    def _instrument_fields(self, node: ast.AST) -> None:
        for name, value in ast.iter_fields(node):
            setattr(node, name, self.instrument(value))

    def _position(self, node: ast.AST) -> SourcePosition | None:
        return SourcePosition.of(node, self.filename)

    def _declare(self, position: SourcePosition) -> str:
        key = source_key(position)
        self.store.declare(key)
        return key

    def _count_call(self, key: str) -> ast.Call:
        return ast.Call(
            func=ast.Name(id=COUNTER_NAME, ctx=ast.Load()),
            args=[ast.Constant(value=key)],
            keywords=[],
        )

    def _count_before(self, node: ast.stmt, hint: SourcePosition | None) -> Any:
        if hint is None or not _is_traceable(node):
            return node
        counter = ast.Expr(value=self._count_call(self._declare(hint)))
        return [ast.copy_location(counter, node), node]

    def _wrap(self, node: ast.expr, hint: SourcePosition | None) -> ast.expr:
        if hint is None:
            return node
        wrapped = ast.Subscript(
            value=ast.Tuple(elts=[self._count_call(self._declare(hint)), node], ctx=ast.Load()),
            slice=ast.Constant(value=-1),
            ctx=ast.Load(),
        )
        return ast.copy_location(wrapped, node)
