"""Rebuild a live function from an instrumented parse of its source.

The function's file is parsed whole, so keys carry real coordinates, and the
definition is found by the name and first line recorded on its code object.
The instrumented definition is compiled inside a throwaway scope that binds
the counter name and the original free variables, which makes all of them
closure variables of the new code object. The new function then gets the
original globals, defaults and closure cells, plus a fresh cell holding the
store's ``increment``. Nothing in the throwaway scope ever runs.
"""

from __future__ import annotations

import __future__
import ast
import copy
import inspect
import linecache
from dataclasses import dataclass
from functools import reduce
from operator import or_
from types import CellType, CodeType, FunctionType

import structlog

from covtrace.core.errors import CaptureFailure, InternalError
from covtrace.tracing.counters import CounterStore
from covtrace.tracing.instrument import COUNTER_NAME, Instrumenter

log = structlog.get_logger(__name__)

_SCOPE_NAME = "__covtrace_scope__"

_FUTURE_FLAGS = reduce(
    or_,
    (getattr(__future__, feature).compiler_flag for feature in __future__.all_feature_names),
    0,
)

_FUNCTION_ATTRIBUTES = (
    "__name__",
    "__qualname__",
    "__module__",
    "__doc__",
    "__kwdefaults__",
    "__type_params__",
)

Definition = ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda


@dataclass(slots=True)
class _Located:
    node: Definition
    enclosing_class: str | None


def copy_function_attributes(source: FunctionType, target: FunctionType) -> None:
    """Copy metadata and ``__dict__`` entries into fresh containers on ``target``."""
    for attr in _FUNCTION_ATTRIBUTES:
        if hasattr(source, attr):
            setattr(target, attr, copy.copy(getattr(source, attr)))
    # lazily evaluated annotations must not be forced here
    annotate = getattr(source, "__annotate__", None)
    if annotate is not None:
        target.__annotate__ = annotate
    else:
        target.__annotations__ = dict(source.__annotations__)
    target.__dict__.clear()
    target.__dict__.update(source.__dict__)


def _discard(key: str) -> None:
    pass


def detach_counter(func: FunctionType) -> None:
    """Point the counter cell of an instrumented function at a no-op.

    Nested functions share the cell, so references that escaped a session
    keep working afterwards without counting.
    """
    free_names = func.__code__.co_freevars
    if COUNTER_NAME in free_names and func.__closure__ is not None:
        func.__closure__[free_names.index(COUNTER_NAME)].cell_contents = _discard


def unwrap_wrapped(func: FunctionType) -> tuple[FunctionType, CellType | None]:
    """Follow ``functools.wraps`` wrappers to the innermost plain function.

    Returns the function and the wrapper cell holding it, or ``func`` and
    ``None`` when nothing is wrapped.

    Raises:
        CaptureFailure: A wrapper keeps the wrapped function somewhere other
            than its own closure.
    """
    current, holder = func, None
    while isinstance(getattr(current, "__wrapped__", None), FunctionType):
        inner = current.__wrapped__
        holder = _holding_cell(current, inner)
        if holder is None:
            raise CaptureFailure.wrapped_unreachable(func.__qualname__)
        current = inner
    return current, holder


def _holding_cell(wrapper: FunctionType, inner: FunctionType) -> CellType | None:
    for cell in wrapper.__closure__ or ():
        try:
            if cell.cell_contents is inner:
                return cell
        except ValueError:  # empty cell
            continue
    return None


def instrument_function(func: FunctionType, store: CounterStore) -> FunctionType:
    """Return an instrumented twin of ``func`` whose counters live in ``store``.

    Raises:
        CaptureFailure: Source missing or unparsable, definition not found,
            or the rebuilt code needs free variables the original lacks.
        UnsupportedSyntaxKind: The tree holds a node the instrumenter rejects.
    """
    code = func.__code__
    filename, source = _read_source(func)
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        raise CaptureFailure.source_unavailable(func.__qualname__, str(e)) from e

    located = _locate(tree, func, filename)
    node = located.node
    # evaluated at definition time; the rebuilt function reuses the live values
    node.args.defaults = []
    node.args.kw_defaults = [None] * len(node.args.kwonlyargs)
    if not isinstance(node, ast.Lambda):
        node.decorator_list = []

    # counters reach the session store only once the rebuild has succeeded
    staged = CounterStore()
    Instrumenter(staged, filename).instrument(node)

    module = _scope_module(located, code.co_freevars)
    compiled = compile(
        module, filename, "exec", flags=code.co_flags & _FUTURE_FLAGS, dont_inherit=True
    )
    new_code = _find_code(compiled, code.co_name, node.lineno)
    if new_code is None:
        raise InternalError.unexpected(
            "compiled definition missing", function=func.__qualname__, line=node.lineno
        )

    rebuilt = FunctionType(
        new_code,
        func.__globals__,
        func.__name__,
        func.__defaults__,
        _closure(func, new_code, store),
    )
    try:
        copy_function_attributes(func, rebuilt)
    except Exception as e:
        raise CaptureFailure.copy_failed(func.__qualname__, str(e)) from e

    for key in staged:
        store.declare(key)
    log.debug(
        "rebuild.instrumented",
        function=func.__qualname__,
        path=filename,
        counters=len(staged),
    )
    return rebuilt


def _read_source(func: FunctionType) -> tuple[str, str]:
    name = func.__qualname__
    try:
        filename = inspect.getsourcefile(func)
    except TypeError as e:
        raise CaptureFailure.source_unavailable(name, str(e)) from e
    if filename is None:
        raise CaptureFailure.source_unavailable(name, "no source file")
    lines = linecache.getlines(filename, func.__globals__)
    if not lines:
        raise CaptureFailure.source_unavailable(name, f"cannot read {filename}")
    return filename, "".join(lines)


def _first_line(node: Definition) -> int:
    if isinstance(node, ast.Lambda):
        return node.lineno
    return min([node.lineno, *(d.lineno for d in node.decorator_list)])


def _locate(tree: ast.Module, func: FunctionType, filename: str) -> _Located:
    """Find the one definition matching ``func``'s code object."""
    name = func.__code__.co_name
    first_line = func.__code__.co_firstlineno
    matches: list[_Located] = []

    stack: list[tuple[ast.AST, str | None]] = [(tree, None)]
    while stack:
        parent, enclosing_class = stack.pop()
        for child in ast.iter_child_nodes(parent):
            if isinstance(child, ast.FunctionDef | ast.AsyncFunctionDef):
                is_match = child.name == name
            else:
                is_match = isinstance(child, ast.Lambda) and name == "<lambda>"
            if is_match and _first_line(child) == first_line:  # type: ignore[arg-type]
                matches.append(_Located(child, enclosing_class))  # type: ignore[arg-type]
            inner = child.name if isinstance(child, ast.ClassDef) else enclosing_class
            stack.append((child, inner))

    if len(matches) != 1:
        raise CaptureFailure.definition_not_found(func.__qualname__, filename, first_line)
    return matches[0]


def _scope_module(located: _Located, free_names: tuple[str, ...]) -> ast.Module:
    """Wrap the definition so the counter and free names compile as closure variables.

    Methods are additionally placed in a class of the same name, which keeps
    private-name mangling and the implicit ``__class__`` cell of ``super()``.
    """
    names = {COUNTER_NAME, *free_names}
    # names the wrapper binds only to hold the definition stay global inside it
    bound: set[str] = set()
    target: ast.stmt
    if isinstance(located.node, ast.Lambda):
        target = ast.copy_location(ast.Expr(value=located.node), located.node)
    else:
        target = located.node
        bound.add(located.node.name)

    if located.enclosing_class is not None:
        names.discard("__class__")
        class_def = ast.parse(f"class {located.enclosing_class}:\n    pass\n").body[0]
        assert isinstance(class_def, ast.ClassDef)
        class_def.body = [target]
        target = class_def
        # the method's own name is bound in the class body, not the wrapper
        bound = {located.enclosing_class}

    source = f"def {_SCOPE_NAME}():\n"
    if bound - names:
        source += f"    global {', '.join(sorted(bound - names))}\n"
    source += "".join(f"    {n} = None\n" for n in sorted(names))
    module = ast.parse(source)
    scope = module.body[0]
    assert isinstance(scope, ast.FunctionDef)
    scope.body.append(target)
    return ast.fix_missing_locations(module)


def _find_code(code: CodeType, name: str, first_line: int) -> CodeType | None:
    for const in code.co_consts:
        if not isinstance(const, CodeType):
            continue
        if const.co_name == name and const.co_firstlineno == first_line:
            return const
        found = _find_code(const, name, first_line)
        if found is not None:
            return found
    return None


def _closure(
    func: FunctionType, new_code: CodeType, store: CounterStore
) -> tuple[CellType, ...] | None:
    """Closure for ``new_code``: the original cells by name plus the counter cell."""
    cells = dict(zip(func.__code__.co_freevars, func.__closure__ or (), strict=True))
    counter = CellType(store.increment)
    closure: list[CellType] = []
    for free_name in new_code.co_freevars:
        if free_name == COUNTER_NAME:
            closure.append(counter)
        elif free_name in cells:
            closure.append(cells[free_name])
        else:
            raise CaptureFailure.closure_mismatch(func.__qualname__, free_name)
    return tuple(closure) or None
