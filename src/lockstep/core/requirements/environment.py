"""Marker environments: the variables markers are evaluated against.

``default_environment()`` describes the running interpreter.
``target_environment()`` starts from it (or from a platform preset) and
applies overrides, which is how locks are produced for an interpreter or
platform other than the one lockstep runs on.
"""

from __future__ import annotations

import os
import platform
import sys
from typing import Any, Mapping

from lockstep.exceptions import ConfigError

MarkerEnvironment = Mapping[str, str]

# Values that differ per operating system; everything else is inherited
# from the running interpreter.
PLATFORM_PRESETS: dict[str, dict[str, str]] = {
    "linux": {
        "os_name": "posix",
        "sys_platform": "linux",
        "platform_system": "Linux",
    },
    "macos": {
        "os_name": "posix",
        "sys_platform": "darwin",
        "platform_system": "Darwin",
    },
    "windows": {
        "os_name": "nt",
        "sys_platform": "win32",
        "platform_system": "Windows",
    },
}


def _format_full_version(info: Any) -> str:
    version = f"{info.major}.{info.minor}.{info.micro}"
    kind = info.releaselevel
    if kind != "final":
        version += kind[0] + str(info.serial)
    return version


def default_environment() -> dict[str, str]:
    """Return the marker environment of the running interpreter."""
    return {
        "implementation_name": sys.implementation.name,
        "implementation_version": _format_full_version(sys.implementation.version),
        "os_name": os.name,
        "platform_machine": platform.machine(),
        "platform_python_implementation": platform.python_implementation(),
        "platform_release": platform.release(),
        "platform_system": platform.system(),
        "platform_version": platform.version(),
        "python_full_version": platform.python_version(),
        "python_version": ".".join(platform.python_version_tuple()[:2]),
        "sys_platform": sys.platform,
    }


def target_environment(
    base: Mapping[str, str] | None = None,
    *,
    platform_name: str | None = None,
    python_version: str | None = None,
    **overrides: str,
) -> dict[str, str]:
    """Build a marker environment for a target interpreter/platform.

    Args:
        base: Starting environment; the running interpreter's when None.
        platform_name: One of ``PLATFORM_PRESETS`` (``linux``, ``macos``,
            ``windows``).
        python_version: ``"3.9"`` or ``"3.9.18"``; sets both
            ``python_version`` and ``python_full_version``.
        **overrides: Any other marker variable.

    Raises:
        ConfigError: For an unknown platform preset or a malformed Python
            version.
    """
    env = dict(default_environment() if base is None else base)
    if platform_name is not None:
        preset = PLATFORM_PRESETS.get(platform_name.lower())
        if preset is None:
            choices = ", ".join(sorted(PLATFORM_PRESETS))
            raise ConfigError(
                f"Unknown platform {platform_name!r} (expected one of: {choices})"
            )
        env.update(preset)
    if python_version is not None:
        parts = python_version.split(".")
        if len(parts) < 2 or not all(p.isdigit() for p in parts):
            raise ConfigError(f"Invalid Python version: {python_version!r}")
        env["python_version"] = ".".join(parts[:2])
        env["python_full_version"] = ".".join(parts) if len(parts) > 2 else f"{parts[0]}.{parts[1]}.0"
    env.update(overrides)
    return env
