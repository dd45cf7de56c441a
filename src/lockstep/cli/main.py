"""lockstep CLI: resolve, lock and install Python project dependencies.

Commands:
    add      - Add requirements to pyproject.toml and re-lock.
    remove   - Remove dependencies and re-lock.
    lock     - Resolve the manifest and write lockstep.lock.
    update   - Re-resolve, moving packages to their newest allowed versions.
    install  - Install the locked versions into the project's venv.
    version  - Show the project's name and version.
    check    - Report whether the lock is fresh, stale or missing.

Usage::

    lockstep add "httpx>=0.27" rich
    lockstep lock --group test
    lockstep --platform windows --python-version 3.9 lock
    lockstep install --group test
    lockstep -vv update httpx
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from lockstep import __version__
from lockstep.cli.deps import add_command, remove_command
from lockstep.cli.info import check_command, version_command
from lockstep.cli.install import install_command
from lockstep.cli.lock import lock_command, update_command
from lockstep.core.requirements import PLATFORM_PRESETS

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int) -> None:
    """Route the ``lockstep`` logger through rich, on stderr."""
    logger = logging.getLogger("lockstep")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=verbosity > 1)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(_LEVELS.get(verbosity, logging.DEBUG))


@click.group()
@click.version_option(version=__version__, prog_name="lockstep")
@click.option("-v", "--verbose", count=True, help="Increase log output (-v info, -vv debug).")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project directory (default: search upwards from the current directory).",
)
@click.option(
    "--platform", "platform_name",
    type=click.Choice(sorted(PLATFORM_PRESETS)),
    default=None,
    help="Resolve markers for this platform instead of the running one.",
)
@click.option("--python-version", default=None, help="Resolve markers for this Python version.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: int,
    project: str | None,
    platform_name: str | None,
    python_version: str | None,
) -> None:
    """lockstep: reproducible dependency locking for Python projects."""
    configure_logging(verbose)
    obj = ctx.ensure_object(dict)
    obj["project"] = project or obj.get("project")
    obj["platform"] = platform_name or obj.get("platform")
    obj["python_version"] = python_version or obj.get("python_version")


cli.add_command(add_command)
cli.add_command(remove_command)
cli.add_command(lock_command)
cli.add_command(update_command)
cli.add_command(install_command)
cli.add_command(version_command)
cli.add_command(check_command)
