"""Virtual environment provisioning.

``PythonEnvironment`` creates a venv with the standard library ``venv``
module of a chosen interpreter and installs locked packages into it with
the environment's own pip. Every install pins exact versions and passes
``--no-deps``: the lock is already the complete set.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Iterable, Sequence

from lockstep.core.lockfile import LockEntry
from lockstep.core.requirements import canonicalize_name
from lockstep.exceptions import PythonEnvironmentError

logger = logging.getLogger(__name__)


class PythonEnvironment:
    """A virtual environment rooted at ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def bin_dir(self) -> Path:
        return self.root / ("Scripts" if os.name == "nt" else "bin")

    @property
    def python_path(self) -> Path:
        return self.bin_dir / ("python.exe" if os.name == "nt" else "python")

    def exists(self) -> bool:
        return self.python_path.exists()

    def create(self, interpreter: str | None = None) -> None:
        """Create the environment with ``interpreter -m venv``.

        Raises:
            PythonEnvironmentError: If venv creation fails.
        """
        interpreter = interpreter or sys.executable
        logger.info("Creating virtual environment at %s", self.root)
        self._run([interpreter, "-m", "venv", str(self.root)])

    def ensure(self, interpreter: str | None = None) -> None:
        if not self.exists():
            self.create(interpreter)

    def install(self, entries: Iterable[LockEntry]) -> list[str]:
        """Install exactly the given locked versions.

        When every entry carries hashes, pip runs in hash-checking mode.

        Returns:
            The ``name==version`` pins that were installed.
        """
        entries = list(entries)
        if not entries:
            return []
        pins = [entry.pin for entry in entries]
        base = [str(self.python_path), "-m", "pip", "install", "--no-deps", "--disable-pip-version-check"]
        if all(entry.hashes for entry in entries):
            lines = [
                " ".join([entry.pin] + [f"--hash={h}" for h in entry.hashes])
                for entry in entries
            ]
            fd, tmp = tempfile.mkstemp(prefix="lockstep-", suffix=".txt")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write("\n".join(lines) + "\n")
                self._run(base + ["--require-hashes", "-r", tmp])
            finally:
                Path(tmp).unlink(missing_ok=True)
        else:
            self._run(base + pins)
        logger.info("Installed %d packages into %s", len(pins), self.root)
        return pins

    def uninstall(self, names: Iterable[str]) -> None:
        names = sorted(set(names))
        if not names:
            return
        self._run([str(self.python_path), "-m", "pip", "uninstall", "-y", *names])

    def installed(self) -> dict[str, str]:
        """Installed distributions as ``{name: version}``."""
        output = self._run(
            [str(self.python_path), "-m", "pip", "list", "--format=freeze",
             "--disable-pip-version-check"]
        )
        result: dict[str, str] = {}
        for line in output.splitlines():
            name, sep, version = line.partition("==")
            if sep:
                result[canonicalize_name(name.strip())] = version.strip()
        return result

    @staticmethod
    def _run(command: Sequence[str]) -> str:
        logger.debug("Running %s", " ".join(command))
        try:
            proc = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise PythonEnvironmentError(f"Cannot run {command[0]}: {exc}") from exc
        if proc.returncode != 0:
            detail = (proc.stderr or proc.stdout).strip()
            raise PythonEnvironmentError(
                f"{' '.join(command[:4])} failed with exit code {proc.returncode}: {detail}"
            )
        return proc.stdout
