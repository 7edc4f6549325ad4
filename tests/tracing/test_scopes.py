"""Tests for tracing/scopes.py module."""

from functools import singledispatch, singledispatchmethod
from types import ModuleType

import pytest

from covtrace.tracing.scopes import (
    DispatchScope,
    MappingScope,
    NamespaceScope,
    Scope,
    as_scope,
    dispatcher_of,
    is_function_binding,
    iter_bindings,
)

SAMPLE = """
import json
from functools import singledispatch
from os.path import join

LIMIT = 3


def top(x):
    return x


class Shape:
    def area(self):
        return 0

    @staticmethod
    def unit():
        return 1

    @classmethod
    def make(cls):
        return cls()

    class Inner:
        def deep(self):
            return 2


@singledispatch
def describe(value):
    return "thing"


@describe.register
def describe_int(value: int):
    return "int"
"""


@pytest.fixture
def sample(load_module):
    return load_module(SAMPLE)


def _names(bindings) -> list[str]:
    """Short ``scope:name`` labels, with the module scope written as ``module``."""
    result = []
    for scope, name, _ in bindings:
        label = name.__name__ if isinstance(name, type) else str(name)
        if isinstance(scope, NamespaceScope) and isinstance(scope.target, ModuleType):
            owner = "module"
        else:
            owner = scope.label.rsplit(".", 1)[-1]
        result.append(f"{owner}:{label}")
    return result


class TestAsScope:
    """Adapting targets to scopes."""

    def test_module(self, sample) -> None:
        assert isinstance(as_scope(sample), NamespaceScope)

    def test_class(self, sample) -> None:
        assert isinstance(as_scope(sample.Shape), NamespaceScope)

    def test_dict(self) -> None:
        assert isinstance(as_scope({"__name__": "ns"}), MappingScope)

    def test_dispatcher(self, sample) -> None:
        assert isinstance(as_scope(sample.describe), DispatchScope)

    def test_scope_passes_through(self) -> None:
        scope = MappingScope({})
        assert as_scope(scope) is scope
        assert isinstance(scope, Scope)

    def test_unsupported_target(self) -> None:
        with pytest.raises(TypeError):
            as_scope(42)


class TestNamespaceScope:
    """Module and class attribute bindings."""

    def test_lookup_keeps_method_wrappers(self, sample) -> None:
        scope = NamespaceScope(sample.Shape)

        assert isinstance(scope.lookup("unit"), staticmethod)
        assert isinstance(scope.lookup("make"), classmethod)

    def test_assign_rebinds_attribute(self, sample) -> None:
        scope = NamespaceScope(sample)

        scope.assign("LIMIT", 10)

        assert sample.LIMIT == 10

    def test_owns_only_local_definitions(self, sample) -> None:
        scope = NamespaceScope(sample)

        assert scope.owns(sample.top)
        assert not scope.owns(sample.join)

    def test_label(self, sample) -> None:
        assert NamespaceScope(sample.Shape).label == f"{sample.__name__}.Shape"


class TestMappingScope:
    """Plain dict namespaces."""

    def test_lookup_and_assign(self) -> None:
        mapping = {"__name__": "ns", "a": 1}
        scope = MappingScope(mapping)

        scope.assign("a", 2)

        assert scope.lookup("a") == 2
        assert mapping["a"] == 2
        assert scope.names() == ["__name__", "a"]

    def test_owns_by_name_entry(self) -> None:
        namespace: dict[str, object] = {"__name__": "ns"}
        exec("def f():\n    return 1\n", namespace)
        scope = MappingScope(namespace)

        assert scope.owns(namespace["f"])
        assert not scope.owns(len)


class TestDispatchScope:
    """singledispatch registries."""

    def test_names_are_registered_types(self, sample) -> None:
        scope = DispatchScope(sample.describe)

        assert set(scope.names()) == {object, int}

    def test_assign_goes_through_register(self) -> None:
        @singledispatch
        def kind(value):
            return "object"

        scope = DispatchScope(kind)
        assert kind(1) == "object"

        scope.assign(int, lambda value: "int")

        assert kind(1) == "int"

    def test_dispatcher_of_singledispatchmethod(self) -> None:
        class Greeter:
            @singledispatchmethod
            def greet(self, value):
                return "any"

        descriptor = Greeter.__dict__["greet"]

        assert dispatcher_of(descriptor) is descriptor.dispatcher

    def test_plain_function_has_no_dispatcher(self, sample) -> None:
        assert dispatcher_of(sample.top) is None


class TestIterBindings:
    """Candidate enumeration."""

    def test_enumerates_owned_functions_classes_and_dispatch(self, sample) -> None:
        names = _names(iter_bindings(as_scope(sample)))

        assert names == [
            "module:describe_int",
            "module:top",
            "Shape:area",
            "Shape:make",
            "Shape:unit",
            "registry:int",
            "registry:object",
            "Inner:deep",
        ]

    def test_dispatch_wrapper_is_not_a_candidate(self, sample) -> None:
        values = [value for _, _, value in iter_bindings(as_scope(sample))]

        assert sample.describe not in values

    def test_imported_functions_are_skipped(self, sample) -> None:
        values = [value for _, _, value in iter_bindings(as_scope(sample))]

        assert sample.join not in values

    def test_owned_only_disabled_includes_imports(self, sample) -> None:
        values = [value for _, _, value in iter_bindings(as_scope(sample), owned_only=False)]

        assert sample.join in values

    def test_without_classes(self, sample) -> None:
        bindings = list(iter_bindings(as_scope(sample), include_classes=False))

        assert all(not isinstance(scope.lookup(name), type) for scope, name, _ in bindings)
        assert {scope.label for scope, _, _ in bindings} == {
            sample.__name__,
            f"{sample.__name__}.describe.registry",
        }

    def test_without_dispatch(self, sample) -> None:
        bindings = list(iter_bindings(as_scope(sample), include_dispatch=False))

        assert not any(isinstance(scope, DispatchScope) for scope, _, _ in bindings)

    def test_cyclic_class_references(self, load_module) -> None:
        """A class reachable twice is expanded once."""
        module = load_module(
            """
            class Node:
                def visit(self):
                    return 1

            Node.Self = Node
            Alias = Node
            """
        )

        bindings = list(iter_bindings(as_scope(module)))

        assert [name for _, name, _ in bindings] == ["visit"]

    def test_function_binding_kinds(self, sample) -> None:
        assert is_function_binding(sample.top)
        assert is_function_binding(sample.Shape.__dict__["unit"])
        assert is_function_binding(sample.Shape.__dict__["make"])
        assert not is_function_binding(len)
        assert not is_function_binding(sample.LIMIT)
