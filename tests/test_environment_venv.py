"""Tests for PythonEnvironment with subprocess calls mocked."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from lockstep.core.lockfile import LockEntry
from lockstep.environment import PythonEnvironment
from lockstep.exceptions import PythonEnvironmentError

HASH_A = "sha256:" + "a" * 64
HASH_B = "sha256:" + "b" * 64


def _done(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def venv(tmp_path: Path) -> PythonEnvironment:
    return PythonEnvironment(tmp_path / ".venv")


class TestCreate:
    def test_missing_until_created(self, venv: PythonEnvironment) -> None:
        assert not venv.exists()
        assert venv.python_path.parent == venv.bin_dir

    def test_create_runs_venv_module(self, venv: PythonEnvironment) -> None:
        with patch("lockstep.environment.subprocess.run", return_value=_done()) as run:
            venv.create()
        command = run.call_args.args[0]
        assert command == [sys.executable, "-m", "venv", str(venv.root)]

    def test_ensure_skips_existing(self, venv: PythonEnvironment) -> None:
        venv.python_path.parent.mkdir(parents=True)
        venv.python_path.write_text("")
        with patch("lockstep.environment.subprocess.run") as run:
            venv.ensure("python3.12")
        run.assert_not_called()

    def test_creation_failure(self, venv: PythonEnvironment) -> None:
        failed = _done(returncode=1, stderr="no such module")
        with patch("lockstep.environment.subprocess.run", return_value=failed):
            with pytest.raises(PythonEnvironmentError, match="no such module"):
                venv.create("python3")

    def test_missing_interpreter(self, venv: PythonEnvironment) -> None:
        with patch("lockstep.environment.subprocess.run", side_effect=FileNotFoundError("python9")):
            with pytest.raises(PythonEnvironmentError, match="Cannot run"):
                venv.create("python9")


class TestInstall:
    def test_pins_without_dependencies(self, venv: PythonEnvironment) -> None:
        entries = [LockEntry("idna", "3.7"), LockEntry("rich", "13.7.1", hashes=(HASH_A,))]
        with patch("lockstep.environment.subprocess.run", return_value=_done()) as run:
            assert venv.install(entries) == ["idna==3.7", "rich==13.7.1"]
        command = run.call_args.args[0]
        assert command[:4] == [str(venv.python_path), "-m", "pip", "install"]
        assert "--no-deps" in command
        assert command[-2:] == ["idna==3.7", "rich==13.7.1"]

    def test_hash_checking_mode(self, venv: PythonEnvironment) -> None:
        entries = [LockEntry("idna", "3.7", hashes=(HASH_A, HASH_B))]
        written: list[str] = []

        def fake_run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess:
            written.append(Path(command[-1]).read_text())
            return _done()

        with patch("lockstep.environment.subprocess.run", side_effect=fake_run) as run:
            venv.install(entries)
        command = run.call_args.args[0]
        assert "--require-hashes" in command
        assert written == [f"idna==3.7 --hash={HASH_A} --hash={HASH_B}\n"]
        assert not Path(command[-1]).exists()

    def test_nothing_to_install(self, venv: PythonEnvironment) -> None:
        with patch("lockstep.environment.subprocess.run") as run:
            assert venv.install([]) == []
        run.assert_not_called()

    def test_pip_failure(self, venv: PythonEnvironment) -> None:
        failed = _done(returncode=1, stderr="ERROR: No matching distribution")
        with patch("lockstep.environment.subprocess.run", return_value=failed):
            with pytest.raises(PythonEnvironmentError, match="No matching distribution"):
                venv.install([LockEntry("idna", "99")])


class TestInspect:
    def test_installed_parses_freeze(self, venv: PythonEnvironment) -> None:
        output = "Rich==13.7.1\nzope.interface==6.0\n-e /src/proj\npip==24.0\n"
        with patch("lockstep.environment.subprocess.run", return_value=_done(output)):
            assert venv.installed() == {"rich": "13.7.1", "zope-interface": "6.0", "pip": "24.0"}

    def test_uninstall(self, venv: PythonEnvironment) -> None:
        with patch("lockstep.environment.subprocess.run", return_value=_done()) as run:
            venv.uninstall(["b", "a", "b"])
        assert run.call_args.args[0][-3:] == ["-y", "a", "b"]

    def test_uninstall_nothing(self, venv: PythonEnvironment) -> None:
        with patch("lockstep.environment.subprocess.run") as run:
            venv.uninstall([])
        run.assert_not_called()
