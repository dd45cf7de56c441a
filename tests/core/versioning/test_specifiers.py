"""Tests for Specifier and SpecifierSet matching."""

from __future__ import annotations

import pytest

from lockstep.core.versioning import Specifier, SpecifierSet, Version, parse_specifier_set
from lockstep.exceptions import InvalidSpecifier


def matches(spec: str, version: str, prereleases: bool | None = None) -> bool:
    return Specifier.parse(spec).matches(Version.parse(version), prereleases=prereleases)


class TestComparisons:
    """Plain ordered and equality operators."""

    def test_gte(self) -> None:
        assert matches(">=1.0", "1.0")
        assert matches(">=1.0", "2.5")
        assert not matches(">=1.0", "0.9")

    def test_lt_excludes_bound(self) -> None:
        assert matches("<2.0", "1.9.9")
        assert not matches("<2.0", "2.0")

    def test_lt_excludes_prereleases_of_bound(self) -> None:
        assert not matches("<2.0", "2.0a1", prereleases=True)
        assert matches("<2.0", "1.9a1", prereleases=True)

    def test_gt_excludes_post_releases_of_bound(self) -> None:
        assert not matches(">1.0", "1.0.post1")
        assert matches(">1.0", "1.0.1")
        assert matches(">1.0.post1", "1.0.post2")

    def test_ordered_comparison_ignores_local(self) -> None:
        assert matches("<=1.0", "1.0+local")

    def test_equal_and_not_equal(self) -> None:
        assert matches("==1.0", "1.0.0")
        assert not matches("==1.0", "1.0.1")
        assert matches("!=1.0", "1.0.1")
        assert not matches("!=1.0", "1.0")

    def test_equal_without_local_matches_any_local(self) -> None:
        assert matches("==1.0", "1.0+build.7")
        assert matches("==1.0+build.7", "1.0+build.7")
        assert not matches("==1.0+build.7", "1.0+build.8")


class TestWildcards:
    """``==X.Y.*`` prefix matching."""

    @pytest.mark.parametrize("version", ["1.2.0", "1.2.9", "1.2.0.post1", "1.2", "1.2.3+local"])
    def test_wildcard_matches(self, version: str) -> None:
        assert matches("==1.2.*", version)

    @pytest.mark.parametrize("version", ["1.3.0", "1.1.9", "2.2"])
    def test_wildcard_rejects(self, version: str) -> None:
        assert not matches("==1.2.*", version)

    def test_not_equal_wildcard(self) -> None:
        assert matches("!=1.2.*", "1.3")
        assert not matches("!=1.2.*", "1.2.5")

    def test_wildcard_requires_equality_operator(self) -> None:
        with pytest.raises(InvalidSpecifier):
            Specifier.parse(">=1.2.*")


class TestCompatibleRelease:
    """``~=`` expansion."""

    def test_compatible_two_segments(self) -> None:
        assert matches("~=2.2", "2.2")
        assert matches("~=2.2", "2.9")
        assert not matches("~=2.2", "3.0")
        assert not matches("~=2.2", "2.1")

    def test_compatible_three_segments(self) -> None:
        assert matches("~=1.4.5", "1.4.9")
        assert not matches("~=1.4.5", "1.5.0")

    def test_expand(self) -> None:
        parts = [str(s) for s in Specifier.parse("~=1.4.5").expand()]
        assert parts == [">=1.4.5", "==1.4.*"]

    def test_single_segment_rejected(self) -> None:
        with pytest.raises(InvalidSpecifier) as info:
            Specifier.parse("~=1")
        assert info.value.position == 2


class TestArbitraryEquality:
    """``===`` compares raw strings."""

    def test_matches_identical_text(self) -> None:
        assert Specifier.parse("===foobar").matches("foobar")
        assert not Specifier.parse("===1.0").matches("1.0.0")

    def test_matches_parsed_version_by_original_spelling(self) -> None:
        assert Specifier.parse("===1.0").matches(Version.parse("1.0"))

    def test_unparseable_text_only_matches_arbitrary(self) -> None:
        assert not Specifier.parse("==1.0").matches("not-a-version")


class TestPrereleases:
    """Pre-releases are opt-in."""

    def test_excluded_by_default(self) -> None:
        assert not matches(">=1.0", "2.0b1")

    def test_opt_in(self) -> None:
        assert matches(">=1.0", "2.0b1", prereleases=True)

    def test_specifier_naming_prerelease_allows_them(self) -> None:
        assert Specifier.parse(">=2.0b1").prereleases
        assert matches(">=2.0b1", "2.0b2")

    def test_not_equal_never_enables_prereleases(self) -> None:
        assert not Specifier.parse("!=2.0b1").prereleases


class TestSpecifierErrors:
    @pytest.mark.parametrize("text", ["", "1.0", "=>1.0", ">=", ">=1.0.x", "<1.0+local"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidSpecifier):
            Specifier.parse(text)


class TestSpecifierSet:
    """Conjunctions of specifiers."""

    def test_contains_all(self) -> None:
        spec = SpecifierSet(">=1.0,<2,!=1.5")
        assert spec.contains("1.4")
        assert not spec.contains("1.5")
        assert not spec.contains("2.0")
        assert "1.9" in spec

    def test_empty_set_accepts_final_releases(self) -> None:
        spec = SpecifierSet()
        assert not spec
        assert spec.contains("99.0")
        assert not spec.contains("1.0rc1")
        assert spec.contains("1.0rc1", prereleases=True)
        assert not spec.contains("garbage")

    def test_order_independent_equality_and_rendering(self) -> None:
        a = SpecifierSet("<2, >=1.0")
        b = SpecifierSet(">=1.0,<2")
        assert a == b
        assert hash(a) == hash(b)
        assert str(a) == "<2,>=1.0"
        assert a == "<2,>=1.0"

    def test_intersection(self) -> None:
        combined = SpecifierSet(">=1.0") & SpecifierSet("<2")
        assert len(combined) == 2
        assert combined.contains("1.5")
        assert not combined.contains("2.1")
        assert (SpecifierSet(">=1") & "<1").filter([Version.parse("1.0")]) == []

    def test_set_level_prerelease_flag(self) -> None:
        spec = SpecifierSet(">=1.0,<2.0rc1")
        assert spec.prereleases
        assert spec.contains("1.9b1")

    def test_filter_keeps_order(self) -> None:
        versions = [Version.parse(v) for v in ["3.0", "2.1", "2.0", "1.0"]]
        assert SpecifierSet(">=2").filter(versions) == versions[:3]

    def test_expanded(self) -> None:
        assert SpecifierSet("~=2.2").expanded() == SpecifierSet(">=2.2,==2.*")

    def test_error_position_is_relative_to_whole_text(self) -> None:
        with pytest.raises(InvalidSpecifier) as info:
            SpecifierSet(">=1.0,<=x")
        assert info.value.text == ">=1.0,<=x"
        assert info.value.position == 8

    def test_empty_member_rejected(self) -> None:
        with pytest.raises(InvalidSpecifier):
            SpecifierSet(">=1.0,,<2")

    def test_parse_helper(self) -> None:
        assert parse_specifier_set(">=1") == SpecifierSet(">=1")
