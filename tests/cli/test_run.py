"""Tests for covtrace run command."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Generator
from pathlib import Path
from types import ModuleType
from unittest.mock import patch
from uuid import uuid4

import pytest
import structlog
from click.testing import CliRunner

from covtrace.cli.main import cli

runner = CliRunner()

BRANCHES = """
def f(x):
    if x > 0:
        return 1
    else:
        return -1
"""


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """The CLI configures logging against the runner's streams; undo that."""
    yield
    structlog.reset_defaults()
    for handler in logging.getLogger().handlers:
        handler.close()
    logging.getLogger().handlers.clear()


@pytest.fixture
def project(tmp_path: Path) -> Generator[Path, None, None]:
    """Project directory with no global config in the way."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    with patch("covtrace.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
        yield project_dir


@pytest.fixture
def branches(load_module) -> ModuleType:
    return load_module(BRANCHES)


class TestRunCommand:
    """covtrace run MODULE -e EXPR."""

    def test_prints_text_summary(self, project: Path, branches: ModuleType) -> None:
        result = runner.invoke(
            cli, ["run", branches.__name__, "-e", "f(1)", "--project", str(project)]
        )

        assert result.exit_code == 0, result.output
        assert "Coverage: 66.7% (2/3 statements in 1 file)" in result.output

    def test_json_output(self, project: Path, branches: ModuleType) -> None:
        result = runner.invoke(
            cli,
            [
                "run",
                branches.__name__,
                "-e",
                "f(1)",
                "-e",
                "f(-1)",
                "--project",
                str(project),
                "--json",
            ],
        )

        assert result.exit_code == 0, result.output
        assert '"statement_coverage_percent": 100.0' in result.output
        assert '"source_format": "covtrace"' in result.output

    def test_expression_required(self, project: Path, branches: ModuleType) -> None:
        result = runner.invoke(cli, ["run", branches.__name__, "--project", str(project)])

        assert result.exit_code != 0

    def test_unknown_module(self, project: Path) -> None:
        result = runner.invoke(
            cli, ["run", "covtrace_no_such_module", "-e", "1", "--project", str(project)]
        )

        assert result.exit_code == 1
        assert "Cannot import 'covtrace_no_such_module'" in result.output

    def test_failing_expression_restores_module(
        self, project: Path, branches: ModuleType
    ) -> None:
        original = branches.f

        result = runner.invoke(
            cli, ["run", branches.__name__, "-e", "f(1) / 0", "--project", str(project)]
        )

        assert result.exit_code != 0
        assert isinstance(result.exception, ZeroDivisionError)
        assert branches.f is original

    def test_invalid_project_config(self, project: Path, branches: ModuleType) -> None:
        (project / "covtrace.yaml").write_text("tracing:\n  owned_only: sometimes\n")

        result = runner.invoke(
            cli, ["run", branches.__name__, "-e", "f(1)", "--project", str(project)]
        )

        assert result.exit_code == 1
        assert "CONFIG_INVALID_VALUE" in result.output

    def test_logging_section_of_project_config(
        self, project: Path, branches: ModuleType
    ) -> None:
        log_file = project / "logs" / "covtrace.log"
        (project / "covtrace.yaml").write_text(
            "logging:\n"
            "  level: INFO\n"
            "  outputs:\n"
            "    - format: json\n"
            f"      destination: {log_file}\n"
        )

        result = runner.invoke(
            cli, ["run", branches.__name__, "-e", "f(1)", "--project", str(project)]
        )

        assert result.exit_code == 0, result.output
        events = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert [e["event"] for e in events] == ["session.started", "session.finished"]
        assert events[0]["session_id"] == events[1]["session_id"]

    def test_verbose_overrides_configured_level(
        self, project: Path, branches: ModuleType
    ) -> None:
        log_file = project / "covtrace.log"
        (project / "covtrace.yaml").write_text(
            "logging:\n"
            "  level: WARNING\n"
            "  outputs:\n"
            "    - format: json\n"
            f"      destination: {log_file}\n"
        )

        result = runner.invoke(
            cli, ["-v", "run", branches.__name__, "-e", "f(1)", "--project", str(project)]
        )

        assert result.exit_code == 0, result.output
        assert "rebuild.instrumented" in log_file.read_text()

    def test_module_importable_from_project(self, project: Path) -> None:
        name = f"covtrace_local_{uuid4().hex[:8]}"
        (project / f"{name}.py").write_text(BRANCHES)

        try:
            result = runner.invoke(
                cli, ["run", name, "-e", "f(1)", "-e", "f(-1)", "--project", str(project)]
            )
        finally:
            sys.modules.pop(name, None)
            if str(project) in sys.path:
                sys.path.remove(str(project))

        assert result.exit_code == 0, result.output
        assert "Coverage: 100.0%" in result.output

    def test_version(self) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output
