"""Shared fixtures for lockfile tests."""

from __future__ import annotations

import pytest

from lockstep.core.lockfile import LockEntry, Lockfile, LockMetadata

FINGERPRINT = "sha256:" + "0" * 64


@pytest.fixture
def sample_lock() -> Lockfile:
    """A three-package lock with metadata filled in."""
    lf = Lockfile([
        LockEntry("requests", "2.31.0", dependencies=("idna", "urllib3"), extras=("socks",)),
        LockEntry("idna", "3.7"),
        LockEntry(
            "urllib3",
            "2.2.1",
            markers='python_version >= "3.8"',
            hashes=("sha256:" + "a" * 64,),
        ),
    ])
    lf.metadata = LockMetadata(
        manifest_fingerprint=FINGERPRINT,
        environment={"python_version": "3.11", "sys_platform": "linux"},
        groups=["test"],
    )
    return lf
