"""Dependency declarations: ``name[extras] specifiers ; marker``.

Examples of accepted input::

    requests
    requests[socks,security] >=2.8.1, ==2.8.*
    pywin32 >=1.0 ; sys_platform == "win32"
    Django (>=4.2,<5)

Names and extras are normalized (lowercase, runs of ``-``, ``_`` and ``.``
collapsed to a single ``-``), so ``Foo_Bar`` and ``foo.bar`` name the same
package.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping

from lockstep.core.requirements.markers import Marker, parse_marker
from lockstep.core.requirements.scanner import Scanner
from lockstep.core.versioning import SpecifierSet, Version
from lockstep.exceptions import InvalidRequirement, InvalidSpecifier

_NAME_RE = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?")
_NAME_FULL_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?$")
_LBRACKET = re.compile(r"\[")
_RBRACKET = re.compile(r"\]")
_COMMA = re.compile(r",")
_LPAREN = re.compile(r"\(")
_RPAREN = re.compile(r"\)")
_SEMICOLON = re.compile(r";")
_AT = re.compile(r"@")
_SPEC_ATOM = r"(?:===|~=|==|!=|<=|>=|<|>)[ \t]*[^,;\s()]*"
_SPEC_LIST_RE = re.compile(rf"{_SPEC_ATOM}(?:[ \t]*,[ \t]*{_SPEC_ATOM})*")


def canonicalize_name(name: str) -> str:
    """Normalize a package or extra name for comparison."""
    return re.sub(r"[-_.]+", "-", name).lower()


def is_valid_name(name: str) -> bool:
    return _NAME_FULL_RE.match(name) is not None


@dataclass(frozen=True)
class Requirement:
    """A parsed dependency declaration.

    Attributes:
        name: Normalized package name.
        extras: Normalized extra names requested.
        specifier: Version constraints; empty means any final release.
        marker: Environment condition, or None when always applicable.
        display_name: The name as written, used when rendering back into a
            manifest so the user's spelling survives.
    """

    name: str
    extras: frozenset[str] = frozenset()
    specifier: SpecifierSet = field(default_factory=SpecifierSet)
    marker: Marker | None = None
    display_name: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> Requirement:
        """Parse a requirement string.

        Raises:
            InvalidRequirement: Bad name, extras or trailing text.
            InvalidSpecifier: Malformed version constraints.
            InvalidMarker: Malformed marker after ``;``.
        """
        if not isinstance(text, str):
            raise InvalidRequirement("Expected a string", repr(text), 0)
        s = Scanner(text, InvalidRequirement)
        raw_name = s.expect(_NAME_RE, "a package name")

        extras: set[str] = set()
        if s.match(_LBRACKET):
            if not s.match(_RBRACKET):
                while True:
                    extras.add(canonicalize_name(s.expect(_NAME_RE, "an extra name")))
                    if s.match(_RBRACKET):
                        break
                    s.expect(_COMMA, "',' or ']' in extras")

        if s.peek(_AT):
            s.error("Direct URL references are not supported")

        if s.match(_LPAREN):
            specifier = cls._specifiers(s, text)
            s.expect(_RPAREN, "')' after version specifiers")
        else:
            specifier = cls._specifiers(s, text)

        marker: Marker | None = None
        if s.match(_SEMICOLON):
            start = s.pos
            node = parse_marker(text[start:], offset=start, source=text)
            marker = Marker.from_node(node)
            s.pos = len(text)

        if not s.at_end():
            s.error("Unexpected text after requirement")

        return cls(
            name=canonicalize_name(raw_name),
            extras=frozenset(extras),
            specifier=specifier,
            marker=marker,
            display_name=raw_name,
        )

    @staticmethod
    def _specifiers(s: Scanner, text: str) -> SpecifierSet:
        s.skip_ws()
        start = s.pos
        chunk = s.match(_SPEC_LIST_RE)
        if chunk is None:
            return SpecifierSet()
        try:
            return SpecifierSet(chunk)
        except InvalidSpecifier as exc:
            raise InvalidSpecifier(exc.reason, text, start + exc.position) from exc

    # -- Behaviour ------------------------------------------------------------

    def is_applicable(
        self, environment: Mapping[str, str], extras: Iterable[str] = ()
    ) -> bool:
        """True if this requirement applies in ``environment``."""
        if self.marker is None:
            return True
        return self.marker.evaluate(environment, extras)

    def is_satisfied_by(self, version: Version, prereleases: bool = True) -> bool:
        """True if ``version`` meets this requirement's specifier."""
        return self.specifier.contains(version, prereleases=prereleases)

    def with_specifier(self, specifier: SpecifierSet | str) -> Requirement:
        if isinstance(specifier, str):
            specifier = SpecifierSet(specifier)
        return replace(self, specifier=specifier)

    def with_extras(self, extras: Iterable[str]) -> Requirement:
        return replace(self, extras=frozenset(canonicalize_name(e) for e in extras))

    @property
    def label(self) -> str:
        """``name[extras]`` without constraints."""
        name = self.display_name or self.name
        if self.extras:
            return f"{name}[{','.join(sorted(self.extras))}]"
        return name

    def __str__(self) -> str:
        text = self.label
        if self.specifier:
            text += str(self.specifier)
        if self.marker is not None:
            text += f"; {self.marker}"
        return text


def parse_requirement(text: str) -> Requirement:
    """Parse ``text`` into a ``Requirement``. See ``Requirement.parse``."""
    return Requirement.parse(text)
