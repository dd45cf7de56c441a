"""Tests for lock deserialization, validation and diffing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lockstep.core.lockfile import LockEntry, Lockfile
from lockstep.exceptions import LockParseError


class TestDeserialization:
    def test_json_round_trip(self, sample_lock: Lockfile) -> None:
        restored = Lockfile.from_json(sample_lock.to_json())
        assert restored == sample_lock
        assert restored.get_entry("requests").extras == ("socks",)
        assert restored.metadata.environment["sys_platform"] == "linux"

    def test_minimal_document(self) -> None:
        lf = Lockfile.from_dict({"lock_version": "1"})
        assert lf.package_count == 0
        assert lf.metadata.manifest_fingerprint == ""

    def test_invalid_json(self) -> None:
        with pytest.raises(LockParseError, match="not valid JSON"):
            Lockfile.from_json("{not json")

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"lock_version": "2"},
            {"packages": []},
            {"lock_version": "1", "packages": {}},
            {"lock_version": "1", "packages": ["idna"]},
            {"lock_version": "1", "packages": [{"name": "idna"}]},
            {"lock_version": "1", "packages": [{"name": "idna", "version": "1", "markers": 3}]},
            {"lock_version": "1", "packages": [{"name": "a", "version": "1", "dependencies": "b"}]},
            {"lock_version": "1", "manifest_fingerprint": 5},
            {"lock_version": "1", "environment": []},
            {"lock_version": "1", "groups": "test"},
        ],
    )
    def test_bad_shapes(self, data: object) -> None:
        with pytest.raises(LockParseError):
            Lockfile.from_dict(data)

    def test_duplicate_package(self) -> None:
        data = {
            "lock_version": "1",
            "packages": [{"name": "a", "version": "1"}, {"name": "a", "version": "2"}],
        }
        with pytest.raises(LockParseError, match="Duplicate"):
            Lockfile.from_dict(data)

    def test_read_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Lockfile.read(tmp_path / "absent.lock")

    def test_read_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "lockstep.lock"
        path.write_text(json.dumps({"lock_version": "1", "packages": 1}))
        with pytest.raises(LockParseError):
            Lockfile.read(path)


class TestValidation:
    def test_valid_lock(self, sample_lock: Lockfile) -> None:
        assert sample_lock.validate() == []

    def test_missing_dependency(self) -> None:
        lf = Lockfile([LockEntry("app", "1.0", dependencies=("ghost",))])
        (error,) = lf.validate()
        assert "'ghost'" in error

    def test_cycles_are_allowed(self) -> None:
        lf = Lockfile([
            LockEntry("a", "1.0", dependencies=("b",)),
            LockEntry("b", "1.0", dependencies=("a",)),
        ])
        assert lf.validate() == []

    def test_bad_version_marker_and_hashes(self) -> None:
        lf = Lockfile([
            LockEntry("a", "not-a-version"),
            LockEntry("b", "1.0", markers="python_version <"),
            LockEntry("c", "1.0", hashes=("md5:abc",)),
        ])
        lf.metadata.manifest_fingerprint = "sha256:short"
        errors = lf.validate()
        assert len(errors) == 4
        assert any("invalid version" in e for e in errors)
        assert any("invalid markers" in e for e in errors)
        assert any("invalid hash" in e for e in errors)
        assert any("fingerprint" in e for e in errors)


class TestDiff:
    def test_identical(self, sample_lock: Lockfile) -> None:
        assert sample_lock.diff(sample_lock) == {"added": [], "removed": [], "changed": []}

    def test_added_removed_changed(self, sample_lock: Lockfile) -> None:
        newer = Lockfile([
            LockEntry("requests", "2.32.0", dependencies=("idna",)),
            LockEntry("idna", "3.7", markers='os_name == "posix"'),
            LockEntry("certifi", "2024.2.2"),
        ])
        result = sample_lock.diff(newer)
        assert result["added"] == ["certifi"]
        assert result["removed"] == ["urllib3"]
        fields = {(c["name"], c["field"]) for c in result["changed"]}
        assert fields == {("idna", "markers"), ("requests", "version"), ("requests", "extras")}
        version_change = next(c for c in result["changed"] if c["field"] == "version")
        assert (version_change["old"], version_change["new"]) == ("2.31.0", "2.32.0")
