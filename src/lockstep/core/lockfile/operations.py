"""Lockfile operations: deserialization, validation and diffing.

These functions are attached to ``Lockfile`` in ``__init__.py`` so each
source file stays focused while callers see a single class:

- **Deserialization:** ``from_dict``, ``from_json``, ``read`` (disk).
- **Validation:** internal consistency checks.
- **Diffing:** structured comparison of two locks.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from lockstep.core.lockfile.models import (
    LockEntry,
    LockMetadata,
    _FINGERPRINT_RE,
    _HASH_RE,
)
from lockstep.core.requirements import Marker
from lockstep.core.versioning import is_valid_version
from lockstep.exceptions import InvalidMarker, LockError, LockParseError

logger = logging.getLogger(__name__)


def _str_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise LockParseError(f"{where} must be a list of strings")
    return tuple(value)


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    """Deserialize a lock from a dict (parsed JSON).

    Raises:
        LockParseError: If the document does not have the lock shape.
    """
    if not isinstance(data, dict):
        raise LockParseError("Lock document must be a JSON object")
    version = data.get("lock_version")
    if version != cls.LOCK_VERSION:
        raise LockParseError(f"Unsupported lock_version: {version!r}")

    packages = data.get("packages", [])
    if not isinstance(packages, list):
        raise LockParseError("'packages' must be a list")

    lf = cls()
    for index, raw in enumerate(packages):
        where = f"packages[{index}]"
        if not isinstance(raw, dict):
            raise LockParseError(f"{where} must be an object")
        name = raw.get("name")
        version_str = raw.get("version")
        if not isinstance(name, str) or not isinstance(version_str, str):
            raise LockParseError(f"{where} needs string 'name' and 'version'")
        markers = raw.get("markers")
        if markers is not None and not isinstance(markers, str):
            raise LockParseError(f"{where}.markers must be a string")
        if name in lf._entries:
            raise LockParseError(f"Duplicate package {name!r} in lock")
        lf._entries[name] = LockEntry(
            name=name,
            version=version_str,
            dependencies=_str_list(raw.get("dependencies", []), f"{where}.dependencies"),
            extras=_str_list(raw.get("extras", []), f"{where}.extras"),
            markers=markers,
            hashes=_str_list(raw.get("hashes", []), f"{where}.hashes"),
        )

    fingerprint = data.get("manifest_fingerprint", "")
    environment = data.get("environment", {})
    if not isinstance(fingerprint, str):
        raise LockParseError("'manifest_fingerprint' must be a string")
    if not isinstance(environment, dict):
        raise LockParseError("'environment' must be an object")
    lf._metadata = LockMetadata(
        manifest_fingerprint=fingerprint,
        environment={str(k): str(v) for k, v in environment.items()},
        groups=list(_str_list(data.get("groups", []), "groups")),
    )
    return lf


def _from_json(cls: type, json_str: str) -> Any:
    """Deserialize from a JSON string.

    Raises:
        LockParseError: If the string is not valid JSON or not a lock.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise LockParseError(f"Lock is not valid JSON: {exc}") from exc
    return cls.from_dict(data)


def _read(cls: type, path: Path) -> Any:
    """Read a lock from disk.

    Raises:
        FileNotFoundError: If the file does not exist.
        LockError: If the file cannot be read.
        LockParseError: If the content is not a valid lock.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise LockError(f"Cannot read lock file {path}: {exc}") from exc
    logger.debug("Reading lock %s", path)
    return cls.from_json(text)


def _validate(self: Any) -> list[str]:
    """Validate the lock for internal consistency.

    Checks:

    1. **Dependency completeness:** every dependency name refers to a
       locked package.
    2. **Versions:** every version string parses.
    3. **Markers:** every marker string parses.
    4. **Hash formats:** fingerprint and file hashes are ``sha256:<hex>``.

    Dependency cycles are legal and not reported.

    Returns:
        Validation error messages. Empty means the lock is valid.
    """
    errors: list[str] = []

    for name, entry in sorted(self._entries.items()):
        for dep_name in entry.dependencies:
            if dep_name not in self._entries:
                errors.append(
                    f"Package {name!r} depends on {dep_name!r} which is not in the lock"
                )

    for name, entry in sorted(self._entries.items()):
        if not is_valid_version(entry.version):
            errors.append(f"Package {name!r} has invalid version {entry.version!r}")

    for name, entry in sorted(self._entries.items()):
        if entry.markers is None:
            continue
        try:
            Marker(entry.markers)
        except InvalidMarker as exc:
            errors.append(f"Package {name!r} has invalid markers: {exc}")

    fingerprint = self._metadata.manifest_fingerprint
    if fingerprint and not _FINGERPRINT_RE.match(fingerprint):
        errors.append(f"Invalid manifest fingerprint format: {fingerprint!r}")
    for name, entry in sorted(self._entries.items()):
        for digest in entry.hashes:
            if not _HASH_RE.match(digest):
                errors.append(f"Package {name!r} has invalid hash format: {digest!r}")

    return errors


def _diff(self: Any, other: Any) -> dict[str, Any]:
    """Compare two locks.

    - **added**: packages present in ``other`` but not in ``self``.
    - **removed**: packages present in ``self`` but not in ``other``.
    - **changed**: packages present in both with a different version,
      marker condition or extras.

    Args:
        other: The lock to compare against (typically the newer one).

    Returns:
        Dict with keys 'added', 'removed', 'changed'.
    """
    self_names = set(self._entries)
    other_names = set(other._entries)

    changes: list[dict[str, Any]] = []
    for name in sorted(self_names & other_names):
        old = self._entries[name]
        new = other._entries[name]
        for attr in ("version", "markers", "extras"):
            before, after = getattr(old, attr), getattr(new, attr)
            if before != after:
                changes.append({"name": name, "field": attr, "old": before, "new": after})

    return {
        "added": sorted(other_names - self_names),
        "removed": sorted(self_names - other_names),
        "changed": changes,
    }
