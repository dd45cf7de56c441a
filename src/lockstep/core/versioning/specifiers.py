"""Version specifiers and specifier sets.

A ``Specifier`` is one comparison (``>=1.2``, ``!=1.3.*``, ``~=2.2``,
``===foobar``); a ``SpecifierSet`` is a conjunction of specifiers, written
comma-separated (``>=1.2,<2,!=1.5.*``).

Pre-release handling
--------------------
Pre-release and dev versions never satisfy a specifier set unless a member
specifier itself names a pre-release (``>=2.0b1``) or the caller passes
``prereleases=True``. This keeps unstable versions out of resolution unless
they were asked for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from lockstep.core.versioning.version import Version
from lockstep.exceptions import InvalidSpecifier, InvalidVersion

OPERATORS: tuple[str, ...] = ("===", "~=", "==", "!=", "<=", ">=", "<", ">")

_SPECIFIER_RE = re.compile(
    r"^\s*(?P<op>===|~=|==|!=|<=|>=|<|>)\s*(?P<ver>[^,;\s)]*)\s*$"
)

_WILDCARD_RE = re.compile(
    r"^v?(?:[0-9]+!)?[0-9]+(?:\.[0-9]+)*\.\*$", re.IGNORECASE
)


def _pad(release: tuple[int, ...], length: int) -> tuple[int, ...]:
    if len(release) >= length:
        return release
    return release + (0,) * (length - len(release))


@dataclass(frozen=True)
class Specifier:
    """A single version comparison.

    Attributes:
        operator: One of ``==``, ``!=``, ``<=``, ``>=``, ``<``, ``>``, ``~=``,
            ``===``. Wildcard equality is ``==`` with ``is_wildcard`` set.
        raw_version: The version text as written, including any ``.*``.
        version: The parsed version. For wildcards this is the prefix (the
            ``.*`` removed); for ``===`` it is the parsed form when the text
            happens to be a valid version and None otherwise.
        is_wildcard: True for ``==X.Y.*`` and ``!=X.Y.*``.
    """

    operator: str
    raw_version: str
    version: Version | None = field(default=None, compare=False)
    is_wildcard: bool = False

    @classmethod
    def parse(cls, text: str) -> Specifier:
        """Parse one specifier such as ``">= 1.2"`` or ``"==1.4.*"``.

        Raises:
            InvalidSpecifier: On unknown operators, malformed versions, or
                operator/version combinations that are not allowed.
        """
        m = _SPECIFIER_RE.match(text)
        if m is None:
            raise InvalidSpecifier("Expected an operator and a version", text, 0)
        op = m.group("op")
        raw = m.group("ver")
        ver_pos = m.start("ver")
        if not raw:
            raise InvalidSpecifier("Missing version after operator", text, ver_pos)

        if op == "===":
            try:
                parsed: Version | None = Version.parse(raw)
            except InvalidVersion:
                parsed = None
            return cls(operator=op, raw_version=raw, version=parsed)

        if raw.endswith(".*"):
            if op not in ("==", "!="):
                raise InvalidSpecifier(
                    f"Wildcard versions are not allowed with {op!r}", text, ver_pos
                )
            if not _WILDCARD_RE.match(raw):
                raise InvalidSpecifier("Invalid wildcard version", text, ver_pos)
            prefix = Version.parse(raw[:-2])
            return cls(operator=op, raw_version=raw, version=prefix, is_wildcard=True)

        try:
            version = Version.parse(raw)
        except InvalidVersion as exc:
            raise InvalidSpecifier(
                "Invalid version", text, ver_pos + exc.position
            ) from exc

        if version.local and op not in ("==", "!="):
            raise InvalidSpecifier(
                f"Local versions are not allowed with {op!r}", text, ver_pos
            )
        if op == "~=" and len(version.release) < 2:
            raise InvalidSpecifier(
                "Compatible release needs at least two release segments",
                text,
                ver_pos,
            )
        return cls(operator=op, raw_version=raw, version=version)

    # -- Semantics ------------------------------------------------------------

    @property
    def prereleases(self) -> bool:
        """True when this specifier explicitly names a pre-release."""
        if self.operator == "!=" or self.version is None:
            return False
        return self.version.is_prerelease

    def expand(self) -> tuple[Specifier, ...]:
        """Return the specifiers this one is shorthand for.

        ``~=X.Y.Z`` expands to ``>=X.Y.Z`` and ``==X.Y.*``; every other
        specifier expands to itself.
        """
        if self.operator != "~=":
            return (self,)
        assert self.version is not None
        lower = Specifier(">=", self.raw_version, self.version)
        prefix_release = self.version.release[:-1]
        prefix = Version(epoch=self.version.epoch, release=prefix_release)
        prefix_text = str(prefix) + ".*"
        return (lower, Specifier("==", prefix_text, prefix, is_wildcard=True))

    def matches(self, candidate: Version | str, prereleases: bool | None = None) -> bool:
        """Return True if ``candidate`` satisfies this specifier.

        Args:
            candidate: A ``Version`` or version text. Text that does not parse
                only matches ``===`` with identical spelling.
            prereleases: Whether pre-releases may match. None defers to
                ``self.prereleases``.
        """
        if isinstance(candidate, str):
            text = candidate
            try:
                version: Version | None = Version.parse(candidate)
            except InvalidVersion:
                version = None
        else:
            version = candidate
            text = candidate.raw or str(candidate)

        if self.operator == "===":
            return text.strip().lower() == self.raw_version.lower()
        if version is None:
            return False

        allow_pre = self.prereleases if prereleases is None else prereleases
        if version.is_prerelease and not allow_pre:
            return False
        return self._compare(version)

    def _compare(self, candidate: Version) -> bool:
        spec = self.version
        assert spec is not None
        op = self.operator

        if op == "~=":
            return all(part._compare(candidate) for part in self.expand())
        if op == "==":
            return self._equal(candidate)
        if op == "!=":
            return not self._equal(candidate)

        # Ordered comparisons ignore the candidate's local segment.
        public = candidate.public
        if op == ">=":
            return public >= spec
        if op == "<=":
            return public <= spec
        if op == "<":
            if not public < spec:
                return False
            # <V excludes pre-releases of V itself unless V is a pre-release.
            if not spec.is_prerelease and candidate.is_prerelease:
                if candidate.base_version == spec.base_version:
                    return False
            return True
        if op == ">":
            if not public > spec:
                return False
            # >V excludes post-releases of V unless V is a post-release.
            if not spec.is_postrelease and candidate.is_postrelease:
                if candidate.base_version == spec.base_version:
                    return False
            return True
        raise InvalidSpecifier(f"Unknown operator {op!r}", str(self), 0)  # pragma: no cover

    def _equal(self, candidate: Version) -> bool:
        spec = self.version
        assert spec is not None
        if self.is_wildcard:
            if candidate.epoch != spec.epoch:
                return False
            width = len(spec.release)
            return _pad(candidate.release, width)[:width] == spec.release
        if spec.local:
            return candidate == spec
        return candidate.public == spec

    def __str__(self) -> str:
        return f"{self.operator}{self.raw_version}"

    def __repr__(self) -> str:
        return f"<Specifier({str(self)!r})>"


class SpecifierSet:
    """An unordered conjunction of ``Specifier`` objects.

    Iteration, ``str()`` and equality do not depend on the order the
    specifiers were written in. The empty set accepts every final release.

    Example::

        spec = SpecifierSet(">=1.0,<2")
        spec.contains("1.4")        # True
        spec.contains("2.0b1")      # False, pre-release not requested
        (spec & SpecifierSet("!=1.4")).contains("1.4")  # False
    """

    __slots__ = ("_specs",)

    def __init__(
        self, specifiers: str | Iterable[Specifier] = ""
    ) -> None:
        if isinstance(specifiers, str):
            self._specs: frozenset[Specifier] = frozenset(
                self._parse_many(specifiers)
            )
        else:
            self._specs = frozenset(specifiers)

    @staticmethod
    def _parse_many(text: str) -> list[Specifier]:
        specs: list[Specifier] = []
        if not text.strip():
            return specs
        offset = 0
        for chunk in text.split(","):
            if not chunk.strip():
                raise InvalidSpecifier("Empty specifier", text, offset)
            try:
                specs.append(Specifier.parse(chunk))
            except InvalidSpecifier as exc:
                raise InvalidSpecifier(exc.reason, text, offset + exc.position) from exc
            offset += len(chunk) + 1
        return specs

    # -- Container protocol ---------------------------------------------------

    def __iter__(self) -> Iterator[Specifier]:
        return iter(sorted(self._specs, key=str))

    def __len__(self) -> int:
        return len(self._specs)

    def __bool__(self) -> bool:
        return bool(self._specs)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            other = SpecifierSet(other)
        if not isinstance(other, SpecifierSet):
            return NotImplemented
        return self._specs == other._specs

    def __hash__(self) -> int:
        return hash(self._specs)

    def __and__(self, other: SpecifierSet | str) -> SpecifierSet:
        if isinstance(other, str):
            other = SpecifierSet(other)
        if not isinstance(other, SpecifierSet):
            return NotImplemented
        return SpecifierSet(self._specs | other._specs)

    def __str__(self) -> str:
        return ",".join(str(s) for s in self)

    def __repr__(self) -> str:
        return f"<SpecifierSet({str(self)!r})>"

    # -- Semantics ------------------------------------------------------------

    @property
    def prereleases(self) -> bool:
        """True when any member explicitly names a pre-release."""
        return any(s.prereleases for s in self._specs)

    def contains(
        self, candidate: Version | str, prereleases: bool | None = None
    ) -> bool:
        """Return True if ``candidate`` satisfies every member specifier.

        Args:
            candidate: A ``Version`` or version text.
            prereleases: Allow pre-releases. None means "only if a member
                specifier names one".
        """
        allow_pre = self.prereleases if prereleases is None else prereleases
        if isinstance(candidate, str):
            try:
                version: Version | str = Version.parse(candidate)
            except InvalidVersion:
                version = candidate
        else:
            version = candidate
        if isinstance(version, Version) and version.is_prerelease and not allow_pre:
            return False
        if not self._specs:
            return isinstance(version, Version)
        return all(s.matches(version, prereleases=True) for s in self._specs)

    def __contains__(self, candidate: Version | str) -> bool:
        return self.contains(candidate)

    def filter(
        self, versions: Iterable[Version], prereleases: bool | None = None
    ) -> list[Version]:
        """Return the members of ``versions`` that satisfy this set, in order."""
        return [v for v in versions if self.contains(v, prereleases=prereleases)]

    def expanded(self) -> SpecifierSet:
        """Return an equivalent set with every ``~=`` rewritten."""
        parts: list[Specifier] = []
        for spec in self._specs:
            parts.extend(spec.expand())
        return SpecifierSet(parts)


def parse_specifier_set(text: str) -> SpecifierSet:
    """Parse comma-separated specifiers into a ``SpecifierSet``."""
    return SpecifierSet(text)
