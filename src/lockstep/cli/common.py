"""Shared CLI plumbing: workspace lookup and exception-to-exit-code mapping.

Exit codes:
    0 - success.
    1 - dependency resolution failed (conflict or too many attempts).
    2 - invalid manifest, lock, configuration or requirement syntax.
    3 - I/O, network or virtual environment failure.
    4 - a required package does not exist on the index.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click

from lockstep.cli.output import err_console, is_not_found, print_conflict
from lockstep.core.requirements import target_environment
from lockstep.exceptions import (
    ConfigError,
    LockError,
    LockParseError,
    ManifestError,
    MetadataError,
    PackageNotFound,
    ParseError,
    PythonEnvironmentError,
    ResolutionConflict,
    ResolutionError,
)
from lockstep.ops import Workspace

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFLICT = 1
EXIT_INVALID = 2
EXIT_IO = 3
EXIT_NOT_FOUND = 4


def get_workspace(ctx: click.Context) -> Workspace:
    """Build the ``Workspace`` for this invocation from the group options.

    ``ctx.obj`` may carry a ``provider`` (used by tests and embedders).
    """
    obj = ctx.ensure_object(dict)
    environment = None
    if obj.get("platform") or obj.get("python_version"):
        environment = target_environment(
            obj.get("environment"),
            platform_name=obj.get("platform"),
            python_version=obj.get("python_version"),
        )
    elif obj.get("environment") is not None:
        environment = dict(obj["environment"])
    return Workspace.discover(
        Path(obj.get("project") or Path.cwd()),
        provider=obj.get("provider"),
        environment=environment,
    )


def _fail(message: str, code: int) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}", highlight=False)
    sys.exit(code)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Translate lockstep exceptions into messages and exit codes."""
    try:
        yield
    except ResolutionConflict as exc:
        print_conflict(exc)
        sys.exit(EXIT_NOT_FOUND if is_not_found(exc) else EXIT_CONFLICT)
    except ResolutionError as exc:
        print_conflict(exc)
        sys.exit(EXIT_CONFLICT)
    except PackageNotFound as exc:
        _fail(str(exc), EXIT_NOT_FOUND)
    except (ParseError, ManifestError, LockParseError, ConfigError) as exc:
        _fail(str(exc), EXIT_INVALID)
    except (MetadataError, LockError, PythonEnvironmentError, OSError) as exc:
        logger.debug("Operation failed", exc_info=True)
        _fail(str(exc), EXIT_IO)
