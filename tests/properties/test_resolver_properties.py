"""Property-based tests for resolution soundness and determinism.

Random package universes are resolved and every successful result is
checked against the requirements that produced it.
"""

from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from lockstep.core.requirements import Requirement
from lockstep.core.resolver import InMemoryProvider, Resolution, Resolver
from lockstep.exceptions import ResolutionConflict

ENV = {"python_version": "3.11", "python_full_version": "3.11.4", "sys_platform": "linux"}

NAMES = ["alpha", "beta", "gamma", "delta", "omega"]
VERSIONS = ["1.0", "1.5", "2.0", "3.0"]
OPERATORS = [">=", "<", "==", "!=", "~="]

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

requirement_texts = st.builds(
    lambda name, op, version, gated: (
        f"{name}{op}{version}" + ('; sys_platform == "win32"' if gated else "")
    ),
    st.sampled_from(NAMES),
    st.sampled_from(OPERATORS),
    st.sampled_from(VERSIONS),
    st.booleans(),
)


@st.composite
def universes(draw: st.DrawFn) -> dict[str, dict[str, list[str]]]:
    universe: dict[str, dict[str, list[str]]] = {}
    for name in draw(st.lists(st.sampled_from(NAMES), min_size=1, unique=True)):
        versions = draw(st.lists(st.sampled_from(VERSIONS), min_size=1, unique=True))
        universe[name] = {
            v: draw(st.lists(requirement_texts, max_size=3)) for v in versions
        }
    return universe


roots = st.lists(requirement_texts, min_size=1, max_size=3)


def _resolve(universe: dict, root_texts: list[str]) -> Resolution:
    resolver = Resolver(InMemoryProvider(universe), ENV, workers=1, max_rounds=100_000)
    return resolver.resolve([Requirement.parse(t) for t in root_texts])


def _check_sound(resolution: Resolution, root_texts: list[str]) -> None:
    mapping = resolution.mapping
    reachable: set[str] = set()
    pending = [Requirement.parse(t) for t in root_texts]
    while pending:
        req = pending.pop()
        if not req.is_applicable(ENV):
            continue
        assert req.name in mapping, f"{req} is not satisfied"
        assert req.specifier.contains(mapping[req.name], prereleases=True)
        if req.name not in reachable:
            reachable.add(req.name)
            pending.extend(resolution.candidates[req.name].dependencies)
    assert reachable == set(mapping)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestResolutionSoundness:
    """A successful resolution satisfies every active requirement."""

    @given(universes(), roots)
    @settings(max_examples=150, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_solution_satisfies_requirements(self, universe: dict, root_texts: list[str]) -> None:
        try:
            resolution = _resolve(universe, root_texts)
        except ResolutionConflict:
            return
        _check_sound(resolution, root_texts)

    @given(universes(), roots)
    @settings(max_examples=100, deadline=None)
    def test_conflict_has_causes(self, universe: dict, root_texts: list[str]) -> None:
        try:
            _resolve(universe, root_texts)
        except ResolutionConflict as exc:
            assert exc.causes


class TestResolutionDeterminism:
    """Identical inputs give identical results."""

    @given(universes(), roots)
    @settings(max_examples=100, deadline=None)
    def test_repeatable(self, universe: dict, root_texts: list[str]) -> None:
        outcomes = []
        for _ in range(2):
            try:
                outcomes.append(_resolve(universe, root_texts).to_lock_entries())
            except ResolutionConflict as exc:
                outcomes.append([str(c) for c in exc.causes])
        assert outcomes[0] == outcomes[1]

    @given(universes(), roots)
    @settings(max_examples=100, deadline=None)
    def test_root_order_does_not_matter(self, universe: dict, root_texts: list[str]) -> None:
        results = []
        for texts in (root_texts, list(reversed(root_texts))):
            try:
                results.append(_resolve(universe, texts).mapping)
            except ResolutionConflict:
                results.append(None)
        assert results[0] == results[1]
