"""Lockfile factory: building a lock from a resolution result.

The normal workflow::

    resolution = Resolver(provider, environment).resolve(manifest.root_requirements())
    lockfile = Lockfile.from_resolution(resolution, manifest)
    lockfile.write(Path("lockstep.lock"))
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from lockstep.core.lockfile.models import LockMetadata


def _from_resolution(
    cls: type,
    resolution: Any,
    manifest: Any | None = None,
    *,
    groups: Iterable[str] = (),
    hashes: Mapping[str, Iterable[str]] | None = None,
) -> Any:
    """Create a lock from a successful ``Resolution``.

    Args:
        resolution: Result of ``Resolver.resolve``.
        manifest: The manifest the root requirements came from; its
            fingerprint is stored for staleness checks.
        groups: Optional and development groups included in the resolution.
        hashes: Optional distribution digests per package name.

    Returns:
        A new ``Lockfile``.
    """
    lf = cls(resolution.to_lock_entries(hashes))
    lf.metadata = LockMetadata(
        manifest_fingerprint=manifest.fingerprint() if manifest is not None else "",
        environment=dict(resolution.environment),
        groups=sorted(set(groups)),
    )
    return lf
