"""covtrace run command - measure a module against test expressions."""

import importlib
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from covtrace.config.loader import load_config
from covtrace.core.errors import CovtraceError
from covtrace.core.logging import configure_logging
from covtrace.coverage import build_summary, build_text_summary, file_rows, tally
from covtrace.tracing.session import CoverageSession


@click.command()
@click.argument("module")
@click.option(
    "-e",
    "--expr",
    "expressions",
    multiple=True,
    required=True,
    help="Python statement to run against the module (repeatable)",
)
@click.option(
    "--project",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory holding covtrace.yaml; MODULE is importable from here",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def run_command(
    ctx: click.Context,
    module: str,
    expressions: tuple[str, ...],
    project: Path,
    as_json: bool,
) -> None:
    """Run EXPR statements against MODULE and report statement coverage.

    Expressions run with the module's functions in scope, one after the
    other, sharing a namespace.
    """
    project = project.resolve()
    try:
        config = load_config(project)
    except CovtraceError as e:
        raise click.ClickException(str(e)) from e
    verbose = (ctx.obj or {}).get("verbose", False)
    configure_logging(config.logging, level="DEBUG" if verbose else None)

    if str(project) not in sys.path:
        sys.path.insert(0, str(project))
    try:
        target = importlib.import_module(module)
    except ImportError as e:
        raise click.ClickException(f"Cannot import '{module}': {e}") from e

    try:
        session = CoverageSession(config=config.tracing)
        result = session.run(target, expressions)
    except CovtraceError as e:
        raise click.ClickException(str(e)) from e

    report = tally(result)
    if as_json:
        click.echo(json.dumps(build_summary(report), indent=2))
        return

    console = Console()
    table = Table(show_header=True, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("File", style="cyan")
    table.add_column("Cover", justify="right")
    table.add_column("Missed lines", style="dim")
    for row in file_rows(report):
        table.add_row(*row)
    console.print(table)
    console.print(build_text_summary(report))
    for name, error in session.skipped:
        console.print(f"[yellow]skipped[/yellow] {name}: {error.message}")
