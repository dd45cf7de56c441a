"""Resolution state, decision frames and conflict records.

The resolver keeps its search history as an explicit trail of
``DecisionFrame`` objects. Each frame holds the state as it was *before*
the decision and the versions still to try, so backtracking is a data
operation: pop the frame or take its next alternative and start again from
a copy of the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from lockstep.core.requirements import Requirement
from lockstep.core.resolver.provider import PackageCandidate
from lockstep.core.versioning import SpecifierSet, Version

ROOT_ORIGIN = "root manifest"


@dataclass(frozen=True)
class RequirementInfo:
    """A requirement together with where it came from.

    Attributes:
        requirement: The requirement as declared.
        parent: The candidate that declared it, or None for manifest
            requirements.
    """

    requirement: Requirement
    parent: PackageCandidate | None = None

    @property
    def origin(self) -> str:
        if self.parent is None:
            return ROOT_ORIGIN
        return str(self.parent)

    def __str__(self) -> str:
        return f"{self.requirement} (from {self.origin})"


@dataclass(frozen=True)
class ConflictCause:
    """Why one attempted step of the search failed.

    Attributes:
        name: Package whose constraints could not be met.
        existing: Intersection of the constraints already active.
        incoming: Specifier set of the requirement that broke it.
        origin: Where the incoming requirement came from.
        requirements: Every requirement naming the package at that point.
        pinned: The version already chosen, when the conflict was with a pin.
        reason: Short explanation.
    """

    name: str
    existing: SpecifierSet
    incoming: SpecifierSet
    origin: str
    requirements: tuple[RequirementInfo, ...] = ()
    pinned: Version | None = None
    reason: str = "no version satisfies all constraints"

    def __str__(self) -> str:
        existing = str(self.existing) or "*"
        incoming = str(self.incoming) or "*"
        if self.pinned is not None:
            return (
                f"{self.name}: {self.origin} requires {incoming!s} but "
                f"{self.name}=={self.pinned} was already selected ({existing})"
            )
        return (
            f"{self.name}: {self.origin} requires {incoming!s}, "
            f"combined with {existing!s}: {self.reason}"
        )


@dataclass
class ResolutionState:
    """Everything the search has decided and learned so far.

    Attributes:
        pins: Chosen candidate per package name.
        constraints: Active requirements per package name, in the order they
            were added.
        extras: Union of extras requested per package name.
        roots: Names required directly by the manifest.
    """

    pins: dict[str, PackageCandidate] = field(default_factory=dict)
    constraints: dict[str, tuple[RequirementInfo, ...]] = field(default_factory=dict)
    extras: dict[str, frozenset[str]] = field(default_factory=dict)
    roots: frozenset[str] = frozenset()

    def copy(self) -> ResolutionState:
        return ResolutionState(
            pins=dict(self.pins),
            constraints=dict(self.constraints),
            extras=dict(self.extras),
            roots=self.roots,
        )

    def specifier_for(self, name: str) -> SpecifierSet:
        """Intersection of every active specifier set naming ``name``."""
        combined = SpecifierSet()
        for info in self.constraints.get(name, ()):
            combined = combined & info.requirement.specifier
        return combined

    def unresolved(self) -> list[str]:
        """Constrained but not yet pinned names, sorted."""
        return sorted(name for name in self.constraints if name not in self.pins)

    @property
    def mapping(self) -> dict[str, Version]:
        return {name: self.pins[name].version for name in sorted(self.pins)}


@dataclass
class DecisionFrame:
    """One decision point on the trail.

    Attributes:
        name: The package being decided.
        alternatives: Versions still to try, newest first.
        snapshot: State before any of this frame's versions were tried.
            Never mutated.
    """

    name: str
    alternatives: list[Version]
    snapshot: ResolutionState
    tried: list[Version] = field(default_factory=list)
