"""``lockstep lock`` and ``lockstep update``: resolve and write the lock.

Exit Codes:
    0 - Lock written.
    1 - Dependency resolution failed.
    2 - Invalid manifest or requirement.
    3 - Index or file system failure.
    4 - A required package does not exist.
"""

from __future__ import annotations

import sys

import click

from lockstep.cli.common import EXIT_OK, get_workspace, handle_errors
from lockstep.cli.output import print_lock_summary
from lockstep.ops import lock_project, update_project

_group_option = click.option(
    "--group", "-g", "groups",
    multiple=True,
    help="Optional or development group to include (repeatable).",
)
_prerelease_option = click.option(
    "--prerelease/--no-prerelease",
    default=None,
    help="Consider pre-releases for every package.",
)


@click.command("lock")
@_group_option
@_prerelease_option
@click.pass_context
def lock_command(ctx: click.Context, groups: tuple[str, ...], prerelease: bool | None) -> None:
    """Resolve the manifest and write the lock file.

    Versions already in the lock are kept when they still satisfy the
    manifest.
    """
    with handle_errors():
        workspace = get_workspace(ctx)
        outcome = lock_project(
            workspace, groups=groups or None, allow_prereleases=prerelease
        )
    print_lock_summary(outcome.lockfile.versions(), outcome.changes, outcome.path)
    sys.exit(EXIT_OK)


@click.command("update")
@click.argument("names", nargs=-1)
@_group_option
@_prerelease_option
@click.pass_context
def update_command(
    ctx: click.Context, names: tuple[str, ...], groups: tuple[str, ...], prerelease: bool | None
) -> None:
    """Move NAMES (default: everything) to the newest allowed versions."""
    with handle_errors():
        workspace = get_workspace(ctx)
        outcome = update_project(
            workspace, names, groups=groups or None, allow_prereleases=prerelease
        )
    print_lock_summary(outcome.lockfile.versions(), outcome.changes, outcome.path)
    sys.exit(EXIT_OK)
