"""``lockstep install``: install the locked versions into the project venv.

Exit Codes:
    0 - Environment matches the lock.
    1 - The lock had to be refreshed and resolution failed.
    3 - The environment could not be created or pip failed, or the lock is
        out of date and ``--no-lock-refresh`` was given.
"""

from __future__ import annotations

import sys

import click

from lockstep.cli.common import EXIT_OK, get_workspace, handle_errors
from lockstep.cli.output import print_install_summary
from lockstep.ops import install_project


@click.command("install")
@click.option(
    "--group", "-g", "groups",
    multiple=True,
    help="Optional or development group to install as well (repeatable).",
)
@click.option(
    "--no-lock-refresh",
    is_flag=True,
    default=False,
    help="Fail instead of re-locking when the lock is missing or stale.",
)
@click.option("--python", "interpreter", default=None, help="Interpreter used to create the venv.")
@click.pass_context
def install_command(
    ctx: click.Context, groups: tuple[str, ...], no_lock_refresh: bool, interpreter: str | None
) -> None:
    """Install the project's locked dependencies."""
    with handle_errors():
        workspace = get_workspace(ctx)
        outcome = install_project(
            workspace,
            groups=groups,
            refresh_lock=not no_lock_refresh,
            interpreter=interpreter,
        )
    print_install_summary(outcome.installed, outcome.unchanged, outcome.relocked)
    sys.exit(EXIT_OK)
