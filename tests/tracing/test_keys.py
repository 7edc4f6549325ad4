"""Tests for tracing/keys.py module."""

import ast

import pytest

from covtrace.tracing.keys import UNKNOWN_FILE, SourcePosition, parse_key, source_key


def _first_statement(source: str) -> ast.stmt:
    return ast.parse(source).body[0]


class TestSourcePosition:
    """Tests for SourcePosition.of."""

    def test_reads_coordinates_from_parsed_node(self) -> None:
        """Coordinates come straight from the node."""
        node = _first_statement("x = 1\n")

        position = SourcePosition.of(node, "mod.py")

        assert position == SourcePosition("mod.py", 1, 0, 1, 5)

    def test_synthetic_node_has_no_position(self) -> None:
        """Nodes built by hand carry no lineno and get no position."""
        node = ast.Pass()

        assert SourcePosition.of(node, "mod.py") is None

    def test_multiline_statement_spans_lines(self) -> None:
        """End coordinates cover the whole statement."""
        node = _first_statement("x = (\n    1 +\n    2\n)\n")

        position = SourcePosition.of(node, "mod.py")

        assert position is not None
        assert (position.lineno, position.end_lineno) == (1, 4)


class TestSourceKey:
    """Tests for source_key."""

    def test_key_format(self) -> None:
        """Key is file and four coordinates joined by colons."""
        key = source_key(SourcePosition("/src/mod.py", 12, 4, 12, 17))

        assert key == "/src/mod.py:12:4:12:17"

    def test_missing_filename_uses_sentinel(self) -> None:
        """No filename falls back to the unknown-file sentinel."""
        key = source_key(SourcePosition(None, 1, 0, 1, 5))

        assert key.startswith(f"{UNKNOWN_FILE}:")

    def test_same_position_same_key(self) -> None:
        """Repeated parses of the same source give identical keys."""
        first = SourcePosition.of(_first_statement("y = 2\n"), "m.py")
        second = SourcePosition.of(_first_statement("y = 2\n"), "m.py")

        assert first is not None and second is not None
        assert source_key(first) == source_key(second)

    @pytest.mark.parametrize(
        "other",
        [
            SourcePosition("b.py", 1, 0, 1, 5),
            SourcePosition("a.py", 2, 0, 2, 5),
            SourcePosition("a.py", 1, 4, 1, 5),
            SourcePosition("a.py", 1, 0, 1, 9),
        ],
    )
    def test_different_positions_never_collide(self, other: SourcePosition) -> None:
        """Any differing component gives a different key."""
        base = SourcePosition("a.py", 1, 0, 1, 5)

        assert source_key(base) != source_key(other)


class TestParseKey:
    """Tests for parse_key."""

    def test_splits_coordinates(self) -> None:
        assert parse_key("m.py:3:8:4:2") == ("m.py", 3, 8, 4, 2)

    def test_filename_with_separator(self) -> None:
        """Coordinates are taken from the right, so drive letters survive."""
        assert parse_key(r"C:\src\m.py:3:8:3:9") == (r"C:\src\m.py", 3, 8, 3, 9)

    def test_inverse_of_source_key(self) -> None:
        position = SourcePosition("pkg/mod.py", 7, 2, 9, 14)

        assert parse_key(source_key(position)) == ("pkg/mod.py", 7, 2, 9, 14)
