"""Lockfile core class: entry management and serialization.

The ``Lockfile`` class is the in-memory form of ``lockstep.lock``. It
provides:

- **Entry management:** add, get, count and list locked packages.
- **Serialization:** deterministic ``to_dict``, ``to_json`` and an atomic
  ``write``.
- **Staleness:** comparison of the stored manifest fingerprint with the
  current manifest.

Determinism guarantee: entries are emitted ordered by package name, all
keys are sorted and no timestamp is written. Two locks with the same
content always produce byte-identical JSON.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

from lockstep.core.lockfile.models import LockEntry, LockMetadata
from lockstep.core.requirements import Marker
from lockstep.exceptions import LockError

logger = logging.getLogger(__name__)


class Lockfile:
    """Resolved version table plus the fingerprint of its manifest.

    Example::

        lf = Lockfile()
        lf.add_entry(LockEntry(name="idna", version="3.7"))
        lf.metadata.manifest_fingerprint = manifest.fingerprint()
        lf.write(Path("lockstep.lock"))
    """

    LOCK_VERSION: str = "1"
    GENERATED_BY: str = "lockstep"

    def __init__(self, entries: Iterable[LockEntry] = ()) -> None:
        self._entries: dict[str, LockEntry] = {}
        self._metadata = LockMetadata()
        for entry in entries:
            self.add_entry(entry)

    # -- Entry management ---------------------------------------------------

    def add_entry(self, entry: LockEntry) -> None:
        """Add a locked package, replacing any entry with the same name."""
        self._entries[entry.name] = entry

    def get_entry(self, name: str) -> LockEntry | None:
        return self._entries.get(name)

    @property
    def entries(self) -> list[LockEntry]:
        """Entries ordered by package name."""
        return [self._entries[name] for name in sorted(self._entries)]

    @property
    def package_count(self) -> int:
        return len(self._entries)

    @property
    def package_names(self) -> list[str]:
        return sorted(self._entries)

    def versions(self) -> dict[str, str]:
        """Package name to locked version string."""
        return {e.name: e.version for e in self.entries}

    def applicable_entries(self, environment: dict[str, str]) -> list[LockEntry]:
        """Entries whose marker conditions hold in ``environment``."""
        result = []
        for entry in self.entries:
            if entry.markers is None or Marker(entry.markers).evaluate(environment):
                result.append(entry)
        return result

    # -- Staleness ----------------------------------------------------------

    def is_stale(self, manifest: Any, groups: Iterable[str] = ()) -> bool:
        """Return True if this lock no longer matches ``manifest``.

        The lock is stale when the manifest's dependency sections changed
        since it was written, or when ``groups`` names a group that was not
        part of the locked resolution.
        """
        fingerprint = manifest.fingerprint()
        if self._metadata.manifest_fingerprint != fingerprint:
            logger.debug(
                "Lock fingerprint %s does not match manifest %s",
                self._metadata.manifest_fingerprint or "<none>", fingerprint,
            )
            return True
        missing = set(groups) - set(self._metadata.groups)
        if missing:
            logger.debug("Lock does not include groups: %s", ", ".join(sorted(missing)))
            return True
        return False

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict matching the lock schema."""
        return {
            "lock_version": self.LOCK_VERSION,
            "generated_by": self.GENERATED_BY,
            "manifest_fingerprint": self._metadata.manifest_fingerprint,
            "environment": dict(sorted(self._metadata.environment.items())),
            "groups": sorted(self._metadata.groups),
            "packages": [entry.to_dict() for entry in self.entries],
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a deterministic JSON string ending in a newline."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True) + "\n"

    def write(self, path: Path) -> None:
        """Write the lock to ``path`` atomically.

        The JSON is written to a temporary file next to ``path`` and moved
        into place, so an interrupted write leaves the previous lock intact.

        Raises:
            LockError: If the file cannot be written.
        """
        path = Path(path)
        text = self.to_json()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise LockError(f"Cannot write lock file {path}: {exc}") from exc
        logger.debug("Wrote %d packages to %s", self.package_count, path)

    # -- Metadata access ----------------------------------------------------

    @property
    def metadata(self) -> LockMetadata:
        return self._metadata

    @metadata.setter
    def metadata(self, value: LockMetadata) -> None:
        self._metadata = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lockfile):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Lockfile({self.package_count} packages)"
