"""covtrace CLI - covtrace command."""

import click

from covtrace.cli.run import run_command


@click.group()
@click.version_option(version="0.1.0", prog_name="covtrace")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level on every output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """covtrace - statement coverage for Python functions."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


cli.add_command(run_command, name="run")


if __name__ == "__main__":
    cli()
