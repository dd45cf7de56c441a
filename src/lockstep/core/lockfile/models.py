"""Lock artifact data models: LockEntry and LockMetadata.

Pure data holders with no I/O, safe to import from anywhere (the resolver
builds ``LockEntry`` objects directly).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Hash formats: "sha256:<64-hex-characters>"
# ---------------------------------------------------------------------------

_FINGERPRINT_RE = re.compile(r"^sha256:[0-9a-f]{64}$")
_HASH_RE = _FINGERPRINT_RE


# ---------------------------------------------------------------------------
# LockEntry: one resolved package
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LockEntry:
    """A single package in the lock artifact.

    Attributes:
        name: Normalized package name.
        version: Resolved version string.
        dependencies: Names of locked packages this one pulled in, sorted.
        extras: Extras that were requested for this package, sorted.
        markers: Environment condition under which the package is needed,
            or None when it is needed unconditionally.
        hashes: Distribution file digests in "sha256:<hex>" format, when the
            provider published them.
    """

    name: str
    version: str
    dependencies: tuple[str, ...] = ()
    extras: tuple[str, ...] = ()
    markers: str | None = None
    hashes: tuple[str, ...] = ()

    @property
    def pin(self) -> str:
        """``name==version``."""
        return f"{self.name}=={self.version}"

    def to_dict(self) -> dict:
        entry: dict = {
            "name": self.name,
            "version": self.version,
            "dependencies": sorted(self.dependencies),
        }
        if self.extras:
            entry["extras"] = sorted(self.extras)
        if self.markers:
            entry["markers"] = self.markers
        if self.hashes:
            entry["hashes"] = sorted(self.hashes)
        return entry


# ---------------------------------------------------------------------------
# LockMetadata: top-level header
# ---------------------------------------------------------------------------


@dataclass
class LockMetadata:
    """Header section of the lock artifact.

    Attributes:
        manifest_fingerprint: "sha256:<hex>" of the manifest dependency
            sections the lock was resolved from. Empty for a hand-built lock.
        environment: Marker environment the resolution was evaluated
            against.
        groups: Optional and development groups that were included.
    """

    manifest_fingerprint: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    groups: list[str] = field(default_factory=list)
