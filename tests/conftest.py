"""Shared fixtures for lockstep tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from lockstep.core.requirements import target_environment

_LINUX = {
    "implementation_name": "cpython",
    "implementation_version": "3.11.4",
    "os_name": "posix",
    "platform_machine": "x86_64",
    "platform_python_implementation": "CPython",
    "platform_release": "6.1.0",
    "platform_system": "Linux",
    "platform_version": "#1 SMP",
    "python_full_version": "3.11.4",
    "python_version": "3.11",
    "sys_platform": "linux",
}


@pytest.fixture
def linux_env() -> dict[str, str]:
    """A fixed CPython 3.11 on Linux marker environment."""
    return dict(_LINUX)


@pytest.fixture
def windows_env() -> dict[str, str]:
    """The same interpreter on Windows."""
    return target_environment(_LINUX, platform_name="windows")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory with a small pyproject.toml."""
    root = tmp_path / "demo"
    root.mkdir()
    (root / "pyproject.toml").write_text(
        "[project]\n"
        'name = "demo"\n'
        'version = "0.3.0"\n'
        "# runtime requirements\n"
        "dependencies = [\n"
        '    "app-lib>=1.0",\n'
        "]\n"
        "\n"
        "[project.optional-dependencies]\n"
        'test = ["checker"]\n'
    )
    return root
