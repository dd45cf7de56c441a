"""Tests for package candidates and the in-memory provider."""

from __future__ import annotations

import pytest

from lockstep.core.requirements import Requirement
from lockstep.core.resolver import InMemoryProvider, PackageCandidate
from lockstep.core.versioning import Version
from lockstep.exceptions import PackageNotFound


class TestPackageCandidate:
    def test_extras_provided(self) -> None:
        candidate = PackageCandidate.build(
            "requests",
            Version.parse("2.31.0"),
            [
                Requirement.parse('pysocks; extra == "socks"'),
                Requirement.parse('chardet; extra == "use_chardet_on_py3"'),
                Requirement.parse("idna"),
            ],
        )
        assert candidate.extras_provided == frozenset({"socks", "use-chardet-on-py3"})

    def test_active_dependencies(self, linux_env: dict[str, str]) -> None:
        candidate = PackageCandidate.build(
            "pkg",
            Version.parse("1.0"),
            [
                Requirement.parse('colorama; os_name == "nt"'),
                Requirement.parse('extra-lib; extra == "more"'),
                Requirement.parse("core"),
            ],
        )
        assert [d.name for d in candidate.active_dependencies(linux_env)] == ["core"]
        names = [d.name for d in candidate.active_dependencies(linux_env, ["more"])]
        assert names == ["extra-lib", "core"]


class TestInMemoryProvider:
    def test_names_are_canonicalized(self) -> None:
        provider = InMemoryProvider({"Foo_Bar": {"1.0": []}})
        assert provider.list_versions("foo-bar") == [Version.parse("1.0")]

    def test_unknown_package(self) -> None:
        with pytest.raises(PackageNotFound):
            InMemoryProvider().list_versions("ghost")

    def test_unknown_version(self) -> None:
        provider = InMemoryProvider({"lib": {"1.0": []}})
        with pytest.raises(PackageNotFound) as info:
            provider.get_dependencies("lib", Version.parse("2.0"))
        assert info.value.version == "2.0"

    def test_dependencies_parsed(self) -> None:
        provider = InMemoryProvider({"lib": {"1.0": ["dep>=2; python_version >= '3.8'"]}})
        (dep,) = provider.get_dependencies("lib", Version.parse("1.0"))
        assert dep.name == "dep"
        assert str(dep.specifier) == ">=2"

    def test_no_hashes_by_default(self) -> None:
        provider = InMemoryProvider({"lib": {"1.0": []}})
        assert list(provider.get_hashes("lib", Version.parse("1.0"))) == []
