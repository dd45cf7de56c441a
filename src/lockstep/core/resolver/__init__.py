"""Dependency resolution.

- ``provider``: the ``MetadataProvider`` interface, ``PackageCandidate`` and
  the dict-backed ``InMemoryProvider``.
- ``cache``: per-run ``MetadataCache`` with concurrent prefetch.
- ``state``: search state, decision frames and conflict records.
- ``resolver``: the backtracking ``Resolver`` and its ``Resolution`` result.
"""

from lockstep.core.resolver.cache import MetadataCache
from lockstep.core.resolver.provider import (
    InMemoryProvider,
    MetadataProvider,
    PackageCandidate,
)
from lockstep.core.resolver.resolver import (
    DEFAULT_MAX_ROUNDS,
    Resolution,
    Resolver,
    resolve,
)
from lockstep.core.resolver.state import (
    ConflictCause,
    DecisionFrame,
    RequirementInfo,
    ResolutionState,
)

__all__ = [
    "ConflictCause",
    "DEFAULT_MAX_ROUNDS",
    "DecisionFrame",
    "InMemoryProvider",
    "MetadataCache",
    "MetadataProvider",
    "PackageCandidate",
    "RequirementInfo",
    "Resolution",
    "ResolutionState",
    "Resolver",
    "resolve",
]
