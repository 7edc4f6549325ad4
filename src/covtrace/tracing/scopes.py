"""Scopes whose bindings a coverage session can rebind.

A scope is anything that maps names to values and can retarget a name:
modules and classes (attribute access), plain dict namespaces, and the
registry of a ``functools.singledispatch`` function, where each registered
type is a "name" routing to one implementation.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator, MutableMapping
from types import FunctionType, ModuleType
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Scope(Protocol):
    """Enumerable, rebindable name -> value bindings."""

    @property
    def label(self) -> str: ...

    def names(self) -> list[Hashable]: ...

    def lookup(self, name: Hashable) -> Any: ...

    def assign(self, name: Hashable, value: Any) -> None: ...

    def owns(self, value: Any) -> bool: ...


def _sort_key(name: Hashable) -> str:
    if isinstance(name, type):
        return f"{name.__module__}.{name.__qualname__}"
    return str(name)


class NamespaceScope:
    """Attributes of a module or class."""

    def __init__(self, target: ModuleType | type) -> None:
        self.target = target
        if isinstance(target, ModuleType):
            self._module_name = target.__name__
        else:
            self._module_name = target.__module__

    @property
    def label(self) -> str:
        if isinstance(self.target, ModuleType):
            return self.target.__name__
        return f"{self._module_name}.{self.target.__qualname__}"

    def names(self) -> list[Hashable]:
        return sorted(vars(self.target), key=_sort_key)

    def lookup(self, name: Hashable) -> Any:
        # raw dict access keeps staticmethod/classmethod wrappers intact
        return vars(self.target)[name]

    def assign(self, name: Hashable, value: Any) -> None:
        setattr(self.target, str(name), value)

    def owns(self, value: Any) -> bool:
        return getattr(value, "__module__", None) == self._module_name

    def __repr__(self) -> str:
        return f"NamespaceScope({self.label})"


class MappingScope:
    """A plain namespace dict, such as the globals of exec'd code."""

    def __init__(self, mapping: MutableMapping[Any, Any]) -> None:
        self.mapping = mapping

    @property
    def label(self) -> str:
        return str(self.mapping.get("__name__", "<mapping>"))

    def names(self) -> list[Hashable]:
        return sorted(self.mapping, key=_sort_key)

    def lookup(self, name: Hashable) -> Any:
        return self.mapping[name]

    def assign(self, name: Hashable, value: Any) -> None:
        self.mapping[name] = value

    def owns(self, value: Any) -> bool:
        return getattr(value, "__module__", None) == self.mapping.get("__name__")

    def __repr__(self) -> str:
        return f"MappingScope({self.label})"


class DispatchScope:
    """Registry of a singledispatch function, one binding per registered type.

    Rebinding goes through ``register`` so the dispatch cache is invalidated.
    """

    def __init__(self, dispatcher: Any) -> None:
        self.dispatcher = dispatcher

    @property
    def label(self) -> str:
        return f"{self.dispatcher.__module__}.{self.dispatcher.__qualname__}.registry"

    def names(self) -> list[Hashable]:
        return sorted(self.dispatcher.registry, key=_sort_key)

    def lookup(self, name: Hashable) -> Any:
        return self.dispatcher.registry[name]

    def assign(self, name: Hashable, value: Any) -> None:
        self.dispatcher.register(name, value)

    def owns(self, value: Any) -> bool:  # noqa: ARG002
        return True

    def __repr__(self) -> str:
        return f"DispatchScope({self.label})"


def is_dispatcher(value: Any) -> bool:
    """True for functions produced by ``functools.singledispatch``."""
    return (
        callable(value)
        and hasattr(value, "registry")
        and hasattr(value, "register")
        and hasattr(value, "dispatch")
    )


def dispatcher_of(value: Any) -> Any | None:
    """The singledispatch function behind ``value``, if it has one."""
    if is_dispatcher(value):
        return value
    inner = getattr(value, "dispatcher", None)  # singledispatchmethod
    if inner is not None and is_dispatcher(inner):
        return inner
    return None


def unwrap_method(value: Any) -> Any:
    """The function inside a staticmethod/classmethod, or ``value`` itself."""
    if isinstance(value, staticmethod | classmethod):
        return value.__func__
    return value


def is_function_binding(value: Any) -> bool:
    """Plain functions, and static/class methods wrapping one."""
    return isinstance(unwrap_method(value), FunctionType)


def as_scope(target: Any) -> Scope:
    """Adapt a module, class, dict or singledispatch function to a Scope."""
    if isinstance(target, Scope):
        return target
    if isinstance(target, ModuleType | type):
        return NamespaceScope(target)
    if isinstance(target, MutableMapping):
        return MappingScope(target)
    dispatcher = dispatcher_of(target)
    if dispatcher is not None:
        return DispatchScope(dispatcher)
    raise TypeError(f"Cannot use {type(target).__name__} as a coverage scope")


def iter_bindings(
    scope: Scope,
    *,
    include_classes: bool = True,
    include_dispatch: bool = True,
    owned_only: bool = True,
) -> Iterator[tuple[Scope, Hashable, Any]]:
    """Yield ``(scope, name, value)`` for every candidate binding, in name order.

    Dispatch tables expand into one binding per registered implementation,
    classes owned by the scope into their own namespace. The wrapper function
    of a dispatch table is never itself a candidate.
    """
    seen: set[int] = set()
    pending: list[Scope] = [scope]
    while pending:
        current = pending.pop(0)
        for name in current.names():
            value = current.lookup(name)
            dispatcher = dispatcher_of(value)
            if dispatcher is not None:
                target, expand = dispatcher, include_dispatch
            elif isinstance(value, type):
                target, expand = value, include_classes
            elif is_function_binding(value):
                if not owned_only or current.owns(unwrap_method(value)):
                    yield current, name, value
                continue
            else:
                continue

            if not expand or id(target) in seen:
                continue
            if owned_only and not current.owns(target):
                continue
            seen.add(id(target))
            pending.append(
                DispatchScope(target) if dispatcher is not None else NamespaceScope(target)
            )
