"""Lock artifact: the resolved version table of a project.

The package is split into focused submodules:

- ``models``: data classes (``LockEntry``, ``LockMetadata``).
- ``lockfile``: the ``Lockfile`` class with entry management, staleness
  and serialization.
- ``operations``: deserialization (``from_dict``, ``from_json``, ``read``),
  validation and diffing.
- ``factory``: ``from_resolution``, building a lock from a resolver result.
"""

from lockstep.core.lockfile.models import LockEntry, LockMetadata

from lockstep.core.lockfile.lockfile import Lockfile

# Attach operations to Lockfile as methods/classmethods
from lockstep.core.lockfile import operations as _ops
from lockstep.core.lockfile import factory as _factory

Lockfile.from_dict = classmethod(_ops._from_dict)
Lockfile.from_json = classmethod(_ops._from_json)
Lockfile.read = classmethod(_ops._read)
Lockfile.validate = _ops._validate
Lockfile.diff = _ops._diff
Lockfile.from_resolution = classmethod(_factory._from_resolution)

__all__ = [
    "Lockfile",
    "LockEntry",
    "LockMetadata",
]
