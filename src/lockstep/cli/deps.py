"""``lockstep add`` and ``lockstep remove``: edit the manifest and re-lock.

The manifest is only rewritten when the new dependency set resolves.
"""

from __future__ import annotations

import sys

import click

from lockstep.cli.common import EXIT_OK, get_workspace, handle_errors
from lockstep.cli.output import console, print_lock_summary
from lockstep.ops import add_dependencies, remove_dependencies


@click.command("add")
@click.argument("requirements", nargs=-1, required=True)
@click.option("--group", "-g", default=None, help="Add to this optional group instead.")
@click.option("--prerelease/--no-prerelease", default=None, help="Allow pre-releases.")
@click.pass_context
def add_command(
    ctx: click.Context, requirements: tuple[str, ...], group: str | None, prerelease: bool | None
) -> None:
    """Add REQUIREMENTS (e.g. 'httpx>=0.27' or 'rich') to the project."""
    with handle_errors():
        workspace = get_workspace(ctx)
        outcome = add_dependencies(
            workspace, requirements, group=group, allow_prereleases=prerelease
        )
    target = f"group {group!r}" if group else "dependencies"
    console.print(f"Added {', '.join(requirements)} to {target}.", highlight=False)
    print_lock_summary(outcome.lockfile.versions(), outcome.changes, outcome.path)
    sys.exit(EXIT_OK)


@click.command("remove")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def remove_command(ctx: click.Context, names: tuple[str, ...]) -> None:
    """Remove NAMES from every dependency list of the project."""
    with handle_errors():
        workspace = get_workspace(ctx)
        outcome = remove_dependencies(workspace, names)
    print_lock_summary(outcome.lockfile.versions(), outcome.changes, outcome.path)
    sys.exit(EXIT_OK)
