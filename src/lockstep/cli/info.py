"""``lockstep version`` and ``lockstep check``."""

from __future__ import annotations

import json
import sys

import click

from lockstep.cli.common import EXIT_CONFLICT, EXIT_INVALID, EXIT_OK, get_workspace, handle_errors
from lockstep.cli.output import console, print_check
from lockstep.ops import check_lock, project_version


@click.command("version")
@click.pass_context
def version_command(ctx: click.Context) -> None:
    """Print the project's name and version."""
    with handle_errors():
        name, version = project_version(get_workspace(ctx))
    click.echo(f"{name} {version or '(no version)'}")
    sys.exit(EXIT_OK)


@click.command("check")
@click.option("--group", "-g", "groups", multiple=True, help="Group the lock must include.")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.pass_context
def check_command(ctx: click.Context, groups: tuple[str, ...], output_format: str) -> None:
    """Report whether the lock matches the manifest.

    Exit code 0 when fresh, 1 when stale or missing, 2 when the lock is
    internally inconsistent.
    """
    with handle_errors():
        status, errors = check_lock(get_workspace(ctx), groups)
    if output_format == "json":
        click.echo(json.dumps({"status": status, "errors": errors}, indent=2))
    else:
        print_check(status, errors)
        if status != "fresh":
            console.print("Run [bold]lockstep lock[/bold] to update it.")
    if errors:
        sys.exit(EXIT_INVALID)
    sys.exit(EXIT_OK if status == "fresh" else EXIT_CONFLICT)
