"""Property-based tests for lock determinism, staleness and marker gating."""

from __future__ import annotations

import random

from hypothesis import given, settings
from hypothesis import strategies as st

from lockstep.core.lockfile import LockEntry, Lockfile, LockMetadata
from lockstep.core.manifest import Manifest
from lockstep.core.requirements import Marker, Requirement

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

package_names = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz-"),
    min_size=2,
    max_size=12,
).filter(lambda s: not s.startswith("-") and not s.endswith("-") and "--" not in s)

versions = st.from_regex(r"[0-9]{1,2}\.[0-9]{1,2}(\.[0-9]{1,2})?", fullmatch=True)

digests = st.from_regex(r"sha256:[0-9a-f]{64}", fullmatch=True)


@st.composite
def lock_entries(draw: st.DrawFn) -> list[LockEntry]:
    names = draw(st.lists(package_names, min_size=0, max_size=8, unique=True))
    entries = []
    for name in names:
        deps = draw(st.lists(st.sampled_from(names), unique=True)) if names else []
        entries.append(
            LockEntry(
                name=name,
                version=draw(versions),
                dependencies=tuple(sorted(deps)),
                markers=draw(st.sampled_from([None, 'sys_platform == "win32"', 'python_version < "3.10"'])),
                hashes=tuple(sorted(draw(st.lists(digests, max_size=2, unique=True)))),
            )
        )
    return entries


python_minors = st.integers(min_value=6, max_value=14)


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestLockDeterminism:
    """Same lock contents produce byte-identical JSON."""

    @given(lock_entries(), st.randoms(use_true_random=False))
    @settings(max_examples=100)
    def test_insertion_order_irrelevant(self, entries: list[LockEntry], rnd: random.Random) -> None:
        shuffled = list(entries)
        rnd.shuffle(shuffled)
        meta = LockMetadata("sha256:" + "1" * 64, {"sys_platform": "linux"}, ["b", "a"])
        first, second = Lockfile(entries), Lockfile(shuffled)
        first.metadata = meta
        second.metadata = meta
        assert first.to_json() == second.to_json()

    @given(lock_entries())
    @settings(max_examples=100)
    def test_json_round_trip(self, entries: list[LockEntry]) -> None:
        lf = Lockfile(entries)
        restored = Lockfile.from_json(lf.to_json())
        assert restored.to_json() == lf.to_json()
        assert restored.validate() == []


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


class TestStaleness:
    """Any change to what is required makes a lock stale."""

    BASE = '[project]\nname = "demo"\ndependencies = ["base-lib>=1"]\n'

    @given(package_names, versions)
    @settings(max_examples=100)
    def test_new_requirement_is_stale(self, name: str, version: str) -> None:
        manifest = Manifest.loads(self.BASE)
        lock = Lockfile()
        lock.metadata.manifest_fingerprint = manifest.fingerprint()
        assert not lock.is_stale(manifest)
        manifest.add_dependency(Requirement.parse(f"{name}>={version}"))
        assert lock.is_stale(manifest)

    @given(st.permutations(["a>=1", "b<2", "c", "d[x]"]))
    def test_fingerprint_ignores_order(self, order: list[str]) -> None:
        text = '[project]\nname = "demo"\ndependencies = [{}]\n'
        a = Manifest.loads(text.format(", ".join(f'"{r}"' for r in order)))
        b = Manifest.loads(text.format('"a>=1", "b<2", "c", "d[x]"'))
        assert a.fingerprint() == b.fingerprint()


# ---------------------------------------------------------------------------
# Marker gating
# ---------------------------------------------------------------------------


class TestMarkerGating:
    """Version markers agree with numeric comparison."""

    @given(python_minors, python_minors)
    def test_python_version_less_than(self, running: int, bound: int) -> None:
        marker = Marker(f'python_version < "3.{bound}"')
        assert marker.evaluate({"python_version": f"3.{running}"}) == (running < bound)

    @given(python_minors, python_minors, st.booleans())
    def test_and_or_follow_boolean_logic(self, running: int, bound: int, windows: bool) -> None:
        env = {
            "python_version": f"3.{running}",
            "sys_platform": "win32" if windows else "linux",
        }
        version_ok = running >= bound
        both = Marker(f'python_version >= "3.{bound}" and sys_platform == "win32"')
        either = Marker(f'python_version >= "3.{bound}" or sys_platform == "win32"')
        assert both.evaluate(env) == (version_ok and windows)
        assert either.evaluate(env) == (version_ok or windows)

    @given(lock_entries(), st.booleans())
    @settings(max_examples=50)
    def test_applicable_entries_respect_markers(self, entries: list[LockEntry], windows: bool) -> None:
        env = {"python_version": "3.11", "sys_platform": "win32" if windows else "linux"}
        chosen = {e.name for e in Lockfile(entries).applicable_entries(env)}
        for entry in entries:
            expected = entry.markers is None or (
                entry.markers == 'sys_platform == "win32"' and windows
            )
            assert (entry.name in chosen) == expected
