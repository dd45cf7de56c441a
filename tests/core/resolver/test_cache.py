"""Tests for MetadataCache."""

from __future__ import annotations

import pytest

from lockstep.core.resolver import InMemoryProvider, MetadataCache
from lockstep.core.versioning import Version
from lockstep.exceptions import MetadataError, PackageNotFound, TransientFetchError


def _provider() -> InMemoryProvider:
    return InMemoryProvider({
        "alpha": {"1.0": [], "2.0": ["beta"], "1.5": []},
        "beta": {"0.1": []},
        "gamma": {"3.0": []},
    })


class TestVersions:
    def test_sorted_newest_first(self) -> None:
        cache = MetadataCache(_provider(), workers=1)
        assert [str(v) for v in cache.list_versions("alpha")] == ["2.0", "1.5", "1.0"]

    def test_second_lookup_is_a_hit(self) -> None:
        provider = _provider()
        cache = MetadataCache(provider, workers=1)
        cache.list_versions("alpha")
        cache.list_versions("alpha")
        assert provider.calls[("list_versions", "alpha")] == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_missing_package_is_remembered(self) -> None:
        provider = _provider()
        cache = MetadataCache(provider, workers=1)
        for _ in range(2):
            with pytest.raises(PackageNotFound):
                cache.list_versions("nope")
        assert provider.calls[("list_versions", "nope")] == 1
        assert cache.is_cached("nope")


class TestPrefetch:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_prefetch_populates(self, workers: int) -> None:
        provider = _provider()
        cache = MetadataCache(provider, workers=workers)
        cache.prefetch(["alpha", "beta", "gamma", "missing"])
        for name in ("alpha", "beta", "gamma", "missing"):
            assert cache.is_cached(name)
        cache.list_versions("gamma")
        assert provider.calls[("list_versions", "gamma")] == 1

    def test_prefetch_skips_cached(self) -> None:
        provider = _provider()
        cache = MetadataCache(provider, workers=4)
        cache.list_versions("alpha")
        cache.prefetch(["alpha", "alpha"])
        assert provider.calls[("list_versions", "alpha")] == 1

    def test_transient_failure_not_cached(self) -> None:
        class Flaky(InMemoryProvider):
            failures = 1

            def list_versions(self, name: str) -> list[Version]:
                if self.failures:
                    self.failures -= 1
                    raise TransientFetchError("timeout")
                return super().list_versions(name)

        cache = MetadataCache(Flaky({"alpha": {"1.0": []}}), workers=1)
        cache.prefetch(["alpha"])
        assert not cache.is_cached("alpha")
        assert [str(v) for v in cache.list_versions("alpha")] == ["1.0"]

    @pytest.mark.parametrize("workers", [1, 4])
    def test_forbidden_lookup_left_for_sequential_call(self, workers: int) -> None:
        class Forbidden(InMemoryProvider):
            def list_versions(self, name: str) -> list[Version]:
                if name == "bad":
                    raise MetadataError("HTTP 403 for bad")
                return super().list_versions(name)

        cache = MetadataCache(Forbidden({"ok": {"1.0": []}}), workers=workers)
        cache.prefetch(["ok", "bad"])
        assert cache.is_cached("ok")
        assert not cache.is_cached("bad")
        with pytest.raises(MetadataError, match="403"):
            cache.list_versions("bad")


class TestCandidates:
    def test_candidate_metadata(self) -> None:
        cache = MetadataCache(_provider(), workers=1)
        candidate = cache.get_candidate("alpha", Version.parse("2.0"))
        assert str(candidate) == "alpha==2.0"
        assert [d.name for d in candidate.dependencies] == ["beta"]
        assert cache.get_candidate("alpha", Version.parse("2.0")) is candidate

    def test_broken_version_remembered(self) -> None:
        cache = MetadataCache(_provider(), workers=1)
        version = Version.parse("9.9")
        with pytest.raises(PackageNotFound):
            cache.get_candidate("alpha", version)
        assert cache.is_broken("alpha", version)
        assert not cache.is_broken("alpha", Version.parse("1.0"))
