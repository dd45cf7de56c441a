"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
from click.testing import CliRunner, Result

from lockstep.cli.main import cli
from lockstep.core.resolver import InMemoryProvider


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def index() -> InMemoryProvider:
    return InMemoryProvider({
        "app-lib": {"1.0": ["util>=2"], "1.1": ["util>=2", 'winhelper; sys_platform == "win32"']},
        "util": {"2.0": [], "2.5": []},
        "winhelper": {"1.0": []},
        "checker": {"0.9": []},
        "idna": {"3.7": []},
    })


@pytest.fixture
def invoke(
    runner: CliRunner,
    project_dir: Path,
    index: InMemoryProvider,
    linux_env: dict[str, str],
) -> Callable[..., Result]:
    """Run the CLI against ``project_dir`` with the in-memory index."""

    def _invoke(*args: str, provider: Any = None, project: Path | None = None) -> Result:
        obj = {"provider": provider or index, "environment": linux_env}
        argv = ["--project", str(project or project_dir), *args]
        return runner.invoke(cli, argv, obj=obj)

    return _invoke
