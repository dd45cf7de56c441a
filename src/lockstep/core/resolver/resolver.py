"""Backtracking dependency resolver.

Turns root requirements plus provider metadata into one version per
package such that every active requirement is satisfied.

Search
------
The resolver is a state machine over ``ResolutionState``:

- **SELECT** the unpinned package with the fewest compatible versions
  (ties: manifest requirements first, then by name).
- **TRY** its versions newest first. Pinning a version adds that version's
  dependencies (after marker evaluation, with the extras requested for it)
  to the state.
- **CONFLICT** when a new requirement leaves a package with no compatible
  version, or excludes the version already pinned.
- **BACKTRACK** to the most recent decision that still has untried
  versions, discarding everything decided after it.
- **SUCCESS** when every constrained package is pinned.
- **FAILURE** when the first decision runs out of versions; the recorded
  conflict causes are raised as ``ResolutionConflict``.

Backtracking is chronological (last decision first), not conflict-driven.
Equivalent conflicts may be revisited; the result is still correct and,
for fixed inputs, always the same.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from lockstep.core.lockfile.models import LockEntry
from lockstep.core.requirements import And, Marker, MarkerNode, Requirement, default_environment
from lockstep.core.requirements.markers import render_marker
from lockstep.core.resolver.cache import DEFAULT_WORKERS, MetadataCache
from lockstep.core.resolver.provider import MetadataProvider, PackageCandidate
from lockstep.core.resolver.state import (
    ConflictCause,
    DecisionFrame,
    RequirementInfo,
    ResolutionState,
)
from lockstep.core.versioning import SpecifierSet, Version
from lockstep.exceptions import PackageNotFound, ResolutionConflict, ResolutionTooDeep

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS: int = 10_000


class _Conflict(Exception):
    """Internal signal that a TRY step failed."""

    def __init__(self, cause: ConflictCause) -> None:
        super().__init__(str(cause))
        self.cause = cause


_Chain = frozenset[MarkerNode]


def _terms(marker: Marker) -> _Chain:
    """Split a marker into the terms of its top-level ``and``."""
    stack, terms = [marker.node], set()
    while stack:
        node = stack.pop()
        if isinstance(node, And):
            stack.extend(node.items)
        else:
            terms.add(node)
    return frozenset(terms)


def _render_chain(chain: _Chain) -> str:
    if len(chain) == 1:
        return render_marker(next(iter(chain)))
    ordered = sorted(chain, key=lambda node: render_marker(node, nested=True))
    return render_marker(And(tuple(ordered)))


def _minimal(chains: Iterable[_Chain]) -> frozenset[_Chain]:
    """Drop every chain that contains a shorter one."""
    kept: list[_Chain] = []
    for chain in sorted(chains, key=len):
        if not any(other <= chain for other in kept):
            kept.append(chain)
    return frozenset(kept)


# ---------------------------------------------------------------------------
# Resolution: the successful result
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """Result of a successful resolution run.

    Attributes:
        candidates: Selected candidate per package name, sorted by name.
        constraints: Requirements that were active for each package.
        extras: Extras requested for each package.
        environment: The marker environment the run was evaluated against.
        rounds: Number of TRY steps the search took.
    """

    candidates: dict[str, PackageCandidate]
    constraints: dict[str, tuple[RequirementInfo, ...]] = field(default_factory=dict)
    extras: dict[str, frozenset[str]] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    rounds: int = 0

    @property
    def mapping(self) -> dict[str, Version]:
        """Package name to selected version, sorted by name."""
        return {name: c.version for name, c in sorted(self.candidates.items())}

    def dependencies_of(self, name: str) -> list[str]:
        """Sorted names of the packages ``name`` pulled into the resolution."""
        candidate = self.candidates[name]
        active = candidate.active_dependencies(
            self.environment, self.extras.get(name, frozenset())
        )
        return sorted({dep.name for dep in active if dep.name in self.candidates and dep.name != name})

    def markers(self) -> dict[str, str | None]:
        """Environment conditions under which each package is needed.

        A package needed unconditionally (some chain of requirements from the
        manifest carries no marker) maps to None. Otherwise it maps to the
        disjunction of the marker chains that pulled it in. ``extra`` tests
        are settled against the extras requested for the declaring package.

        Each chain is a set of marker terms joined by ``and``; a chain that
        contains another one adds nothing and is dropped. Chains only grow
        from a finite set of terms, so the loop below reaches a fixpoint even
        when conditional dependencies form a cycle.
        """
        names = sorted(self.candidates)
        conditions: dict[str, frozenset[_Chain]] = {name: frozenset() for name in names}

        changed = True
        while changed:
            changed = False
            for name in names:
                result = self._conditions_for(name, conditions)
                if result != conditions[name]:
                    conditions[name] = result
                    changed = True

        rendered: dict[str, str | None] = {}
        for name in names:
            chains = conditions[name]
            if not chains or frozenset() in chains:
                rendered[name] = None
            else:
                rendered[name] = " or ".join(sorted(_render_chain(c) for c in chains))
        return rendered

    def _conditions_for(
        self, name: str, conditions: Mapping[str, frozenset[_Chain]]
    ) -> frozenset[_Chain]:
        chains: set[_Chain] = set()
        for info in self.constraints.get(name, ()):
            if info.parent is None:
                parents: frozenset[_Chain] = frozenset({frozenset()})
                extras: frozenset[str] = frozenset()
            else:
                parents = conditions.get(info.parent.name, frozenset())
                extras = self.extras.get(info.parent.name, frozenset())
            marker = info.requirement.marker
            local = True if marker is None else marker.assume_extras(extras)
            if local is False:
                continue
            terms = frozenset() if local is True else _terms(local)
            chains.update(parent | terms for parent in parents)
        return _minimal(chains)

    def to_lock_entries(
        self, hashes: Mapping[str, Iterable[str]] | None = None
    ) -> list[LockEntry]:
        """Convert into lock entries ordered by package name."""
        markers = self.markers()
        entries = []
        for name in sorted(self.candidates):
            candidate = self.candidates[name]
            entries.append(
                LockEntry(
                    name=name,
                    version=str(candidate.version),
                    dependencies=tuple(self.dependencies_of(name)),
                    extras=tuple(sorted(self.extras.get(name, ()))),
                    markers=markers[name],
                    hashes=tuple(sorted((hashes or {}).get(name, ()))),
                )
            )
        return entries


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver:
    """Chronological backtracking resolver.

    Args:
        provider: Metadata source. Wrapped in a fresh ``MetadataCache`` per
            ``resolve`` call unless ``cache`` is given.
        environment: Marker environment of the target; the running
            interpreter's when None. Fixed for the whole run.
        allow_prereleases: Consider pre-releases for every package, not only
            for those whose constraints name one.
        max_rounds: Upper bound on TRY steps before giving up.
        workers: Prefetch thread pool size.

    Example::

        resolver = Resolver(provider, environment=target_environment(platform_name="linux"))
        resolution = resolver.resolve([Requirement.parse("requests>=2")])
        resolution.mapping   # {"certifi": <Version('2024.2.2')>, ...}
    """

    def __init__(
        self,
        provider: MetadataProvider,
        environment: Mapping[str, str] | None = None,
        *,
        allow_prereleases: bool = False,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        workers: int = DEFAULT_WORKERS,
        cache: MetadataCache | None = None,
    ) -> None:
        self._provider = provider
        self._environment = dict(default_environment() if environment is None else environment)
        self._allow_prereleases = allow_prereleases
        self._max_rounds = max_rounds
        self._workers = workers
        self._shared_cache = cache
        self._cache: MetadataCache = cache or MetadataCache(provider, workers=workers)
        self._preferred: dict[str, Version] = {}
        self._causes: list[ConflictCause] = []
        self._rounds = 0

    @property
    def environment(self) -> dict[str, str]:
        return dict(self._environment)

    @property
    def cache(self) -> MetadataCache:
        """The cache used by the most recent (or next) run."""
        return self._cache

    # -- Public API -------------------------------------------------------------

    def resolve(
        self,
        requirements: Iterable[Requirement],
        *,
        preferred: Mapping[str, Version] | None = None,
    ) -> Resolution:
        """Find one version per package satisfying ``requirements``.

        Args:
            requirements: Root requirements, typically from the manifest.
                Requirements whose marker is false in the target environment
                are dropped before the search starts.
            preferred: Versions to try first when still compatible, usually
                the ones from an existing lock.

        Returns:
            The successful ``Resolution``.

        Raises:
            ResolutionConflict: No assignment exists.
            ResolutionTooDeep: ``max_rounds`` TRY steps were not enough.
            TransientFetchError: Metadata could not be fetched.
        """
        if self._shared_cache is None:
            self._cache = MetadataCache(self._provider, workers=self._workers)
        self._preferred = dict(preferred or {})
        self._causes = []
        self._rounds = 0

        roots: list[Requirement] = []
        for req in requirements:
            if req.is_applicable(self._environment):
                roots.append(req)
            else:
                logger.debug("Skipping %s: marker does not match the target", req)

        state = ResolutionState(roots=frozenset(r.name for r in roots))
        self._cache.prefetch(r.name for r in roots)
        try:
            for req in roots:
                self._add(state, RequirementInfo(req))
        except _Conflict as exc:
            raise ResolutionConflict([exc.cause]) from None

        trail: list[DecisionFrame] = []
        while True:
            name = self._select(state)
            if name is None:
                break
            trail.append(DecisionFrame(name, self._compatible(state, name), state))
            state = self._advance(trail)

        logger.debug("Resolved %d packages in %d rounds", len(state.pins), self._rounds)
        return Resolution(
            candidates=dict(sorted(state.pins.items())),
            constraints={n: state.constraints[n] for n in sorted(state.pins)},
            extras={n: state.extras[n] for n in sorted(state.extras) if n in state.pins},
            environment=dict(self._environment),
            rounds=self._rounds,
        )

    # -- SELECT -----------------------------------------------------------------

    def _select(self, state: ResolutionState) -> str | None:
        best: tuple[tuple[int, int, str], str] | None = None
        for name in state.unresolved():
            count = len(self._compatible(state, name))
            key = (count, 0 if name in state.roots else 1, name)
            if best is None or key < best[0]:
                best = (key, name)
        return None if best is None else best[1]

    def _compatible(self, state: ResolutionState, name: str) -> list[Version]:
        """Versions of ``name`` allowed by the current constraints, best first."""
        try:
            versions = self._cache.list_versions(name)
        except PackageNotFound:
            return []
        spec = state.specifier_for(name)
        allow_pre = self._allow_prereleases or spec.prereleases
        result = [
            v for v in versions
            if spec.contains(v, prereleases=allow_pre) and not self._cache.is_broken(name, v)
        ]
        preferred = self._preferred.get(name)
        if preferred is not None and preferred in result:
            result.remove(preferred)
            result.insert(0, preferred)
        return result

    # -- TRY / BACKTRACK --------------------------------------------------------

    def _advance(self, trail: list[DecisionFrame]) -> ResolutionState:
        while trail:
            frame = trail[-1]
            while frame.alternatives:
                version = frame.alternatives.pop(0)
                frame.tried.append(version)
                self._rounds += 1
                if self._rounds > self._max_rounds:
                    raise ResolutionTooDeep(self._max_rounds)
                state = frame.snapshot.copy()
                try:
                    self._try(state, frame.name, version)
                except _Conflict as exc:
                    logger.debug("Conflict trying %s==%s: %s", frame.name, version, exc.cause)
                    self._record(exc.cause)
                    continue
                logger.debug("Selected %s==%s", frame.name, version)
                return state
            trail.pop()
            if trail:
                logger.debug(
                    "Backtracking from %s to %s", frame.name, trail[-1].name
                )
        raise ResolutionConflict(self._causes)

    def _try(self, state: ResolutionState, name: str, version: Version) -> None:
        try:
            candidate = self._cache.get_candidate(name, version)
        except PackageNotFound:
            logger.warning("No metadata for %s==%s, skipping it", name, version)
            raise _Conflict(
                ConflictCause(
                    name=name,
                    existing=state.specifier_for(name),
                    incoming=SpecifierSet(),
                    origin=f"{name}=={version}",
                    requirements=state.constraints.get(name, ()),
                    reason="metadata unavailable",
                )
            ) from None

        state.pins[name] = candidate
        extras = state.extras.get(name, frozenset())
        missing = extras - candidate.extras_provided
        if missing:
            logger.debug("%s does not provide extras: %s", candidate, ", ".join(sorted(missing)))
        deps = candidate.active_dependencies(self._environment, extras)
        self._cache.prefetch(d.name for d in deps if d.name not in state.pins)
        for dep in deps:
            self._add(state, RequirementInfo(dep, candidate))

    def _add(self, state: ResolutionState, info: RequirementInfo) -> None:
        req = info.requirement
        name = req.name
        if req.marker is not None and req.marker.unknown_variables():
            logger.debug(
                "Marker of %s uses unknown variables: %s",
                req, ", ".join(sorted(req.marker.unknown_variables())),
            )
        existing = state.specifier_for(name)
        state.constraints[name] = state.constraints.get(name, ()) + (info,)
        old_extras = state.extras.get(name, frozenset())
        new_extras = old_extras | req.extras
        if new_extras != old_extras:
            state.extras[name] = new_extras

        pinned = state.pins.get(name)
        if pinned is not None:
            if not req.specifier.contains(pinned.version, prereleases=True):
                raise _Conflict(
                    ConflictCause(
                        name=name,
                        existing=existing,
                        incoming=req.specifier,
                        origin=info.origin,
                        requirements=state.constraints[name],
                        pinned=pinned.version,
                    )
                )
            if new_extras != old_extras:
                before = set(pinned.active_dependencies(self._environment, old_extras))
                for dep in pinned.active_dependencies(self._environment, new_extras):
                    if dep not in before:
                        self._add(state, RequirementInfo(dep, pinned))
            return

        if not self._compatible(state, name):
            reason = "no version satisfies all constraints"
            if not self._cache.is_cached(name) or self._is_missing(name):
                reason = "package not found"
            raise _Conflict(
                ConflictCause(
                    name=name,
                    existing=existing,
                    incoming=req.specifier,
                    origin=info.origin,
                    requirements=state.constraints[name],
                    reason=reason,
                )
            )

    def _is_missing(self, name: str) -> bool:
        try:
            return not self._cache.list_versions(name)
        except PackageNotFound:
            return True

    def _record(self, cause: ConflictCause) -> None:
        if cause not in self._causes:
            self._causes.append(cause)


def resolve(
    requirements: Iterable[Requirement],
    provider: MetadataProvider,
    environment: Mapping[str, str] | None = None,
    **kwargs,
) -> Resolution:
    """Convenience wrapper: ``Resolver(provider, environment, **kwargs).resolve(requirements)``."""
    preferred = kwargs.pop("preferred", None)
    return Resolver(provider, environment, **kwargs).resolve(requirements, preferred=preferred)
