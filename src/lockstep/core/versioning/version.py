"""Version numbers: parsing, normalization and total ordering.

A version is ``[N!]N(.N)*[{a|b|rc}N][.postN][.devN][+local]``. Parsing is
lenient in the usual ways (case-insensitive, ``-``/``_``/``.`` separators,
``alpha``/``beta``/``c``/``pre``/``preview`` aliases, implicit ``0`` numbers,
``-N`` post releases) and the parsed value is normalized, so two spellings
of the same version compare and hash equal.

Ordering
--------
Versions are ordered by epoch, then release (shorter release zero-padded),
then the qualifier rules::

    1.0.dev1 < 1.0a1.dev1 < 1.0a1 < 1.0b1 < 1.0rc1 < 1.0 < 1.0.post1.dev1 < 1.0.post1

and finally by local segments, compared segment by segment with numeric
segments sorting before alphanumeric ones, and a version without a local
segment sorting before any version that has one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from lockstep.exceptions import InvalidVersion

# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

_VERSION_BODY = r"""
    v?
    (?:(?P<epoch>[0-9]+)!)?
    (?P<release>[0-9]+(?:\.[0-9]+)*)
    (?P<pre>
        [-_.]?
        (?P<pre_l>alpha|a|beta|b|preview|pre|c|rc)
        [-_.]?
        (?P<pre_n>[0-9]+)?
    )?
    (?P<post>
        (?:-(?P<post_n1>[0-9]+))
        |
        (?:
            [-_.]?
            (?P<post_l>post|rev|r)
            [-_.]?
            (?P<post_n2>[0-9]+)?
        )
    )?
    (?P<dev>
        [-_.]?
        (?P<dev_l>dev)
        [-_.]?
        (?P<dev_n>[0-9]+)?
    )?
    (?:\+(?P<local>[a-z0-9]+(?:[-_.][a-z0-9]+)*))?
"""

_VERSION_RE = re.compile(
    r"^\s*" + _VERSION_BODY + r"\s*$", re.VERBOSE | re.IGNORECASE
)

# Same grammar without the end anchor; used to locate parse failures.
_VERSION_PREFIX_RE = re.compile(r"^\s*" + _VERSION_BODY, re.VERBOSE | re.IGNORECASE)

_PRE_ALIASES: dict[str, str] = {
    "a": "a",
    "alpha": "a",
    "b": "b",
    "beta": "b",
    "c": "rc",
    "rc": "rc",
    "pre": "rc",
    "preview": "rc",
}

_PRE_RANK: dict[str, int] = {"a": 0, "b": 1, "rc": 2}

_LOCAL_SPLIT_RE = re.compile(r"[-_.]")


def _strip_trailing_zeros(release: tuple[int, ...]) -> tuple[int, ...]:
    end = len(release)
    while end > 1 and release[end - 1] == 0:
        end -= 1
    return release[:end]


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Version:
    """An immutable, totally ordered version number.

    Attributes:
        epoch: Non-negative epoch (``N!`` prefix), 0 when absent.
        release: Release segment, e.g. ``(1, 2, 0)``.
        pre: Pre-release as ``(kind, number)`` with kind in ``a``/``b``/``rc``.
        post: Post-release number, or None.
        dev: Dev-release number, or None.
        local: Local segments; ints for numeric segments, lowercase strings
            otherwise. Empty when there is no local version.
        raw: The text this version was parsed from, if any. Not part of
            equality or ordering; only the ``===`` operator looks at it.
    """

    epoch: int = 0
    release: tuple[int, ...] = (0,)
    pre: tuple[str, int] | None = None
    post: int | None = None
    dev: int | None = None
    local: tuple[int | str, ...] = ()
    raw: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "release", tuple(self.release))
        object.__setattr__(self, "local", tuple(self.local))
        if not self.release:
            raise InvalidVersion("Empty release segment", str(self.release), 0)
        if self.epoch < 0 or any(part < 0 for part in self.release):
            raise InvalidVersion(
                "Negative version component", ".".join(map(str, self.release)), 0
            )
        if self.pre is not None and self.pre[0] not in _PRE_RANK:
            raise InvalidVersion("Unknown pre-release kind", self.pre[0], 0)

    # -- Parsing ------------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version string.

        Args:
            text: Version text such as ``"1.0"``, ``"2!1.0rc1.post2.dev3+ubuntu.1"``.

        Returns:
            The normalized ``Version``.

        Raises:
            InvalidVersion: If ``text`` is not a valid version. The error
                carries the position of the first character that could not
                be consumed.
        """
        if not isinstance(text, str):
            raise InvalidVersion("Expected a string", repr(text), 0)
        m = _VERSION_RE.match(text)
        if m is None:
            prefix = _VERSION_PREFIX_RE.match(text)
            position = prefix.end() if prefix else len(text) - len(text.lstrip())
            raise InvalidVersion("Invalid version", text, position)

        pre: tuple[str, int] | None = None
        if m.group("pre_l"):
            pre = (_PRE_ALIASES[m.group("pre_l").lower()], int(m.group("pre_n") or 0))

        post: int | None = None
        if m.group("post_n1") is not None:
            post = int(m.group("post_n1"))
        elif m.group("post_l"):
            post = int(m.group("post_n2") or 0)

        dev: int | None = None
        if m.group("dev_l"):
            dev = int(m.group("dev_n") or 0)

        local: tuple[int | str, ...] = ()
        if m.group("local"):
            local = tuple(
                int(seg) if seg.isdigit() else seg.lower()
                for seg in _LOCAL_SPLIT_RE.split(m.group("local"))
            )

        return cls(
            epoch=int(m.group("epoch") or 0),
            release=tuple(int(part) for part in m.group("release").split(".")),
            pre=pre,
            post=post,
            dev=dev,
            local=local,
            raw=text.strip(),
        )

    # -- Derived properties ---------------------------------------------------

    @property
    def is_prerelease(self) -> bool:
        """True for pre-releases and dev releases."""
        return self.pre is not None or self.dev is not None

    @property
    def is_postrelease(self) -> bool:
        return self.post is not None

    @property
    def is_devrelease(self) -> bool:
        return self.dev is not None

    @property
    def major(self) -> int:
        return self.release[0]

    @property
    def minor(self) -> int:
        return self.release[1] if len(self.release) > 1 else 0

    @property
    def micro(self) -> int:
        return self.release[2] if len(self.release) > 2 else 0

    @property
    def public(self) -> Version:
        """This version without its local segment."""
        if not self.local:
            return self
        return Version(self.epoch, self.release, self.pre, self.post, self.dev)

    @property
    def base_version(self) -> Version:
        """Epoch and release only, e.g. ``1.2`` for ``1.2rc1.post3+abc``."""
        return Version(self.epoch, self.release)

    # -- Ordering -------------------------------------------------------------

    @cached_property
    def sort_key(self) -> tuple[Any, ...]:
        """Tuple key implementing the total order described in the module docs."""
        # A dev release of a plain release sorts before its pre-releases.
        if self.pre is None and self.post is None and self.dev is not None:
            pre_key: tuple[int, ...] = (-1,)
        elif self.pre is None:
            pre_key = (1,)
        else:
            pre_key = (0, _PRE_RANK[self.pre[0]], self.pre[1])

        post_key: tuple[int, ...] = (0,) if self.post is None else (1, self.post)
        dev_key: tuple[int, ...] = (1,) if self.dev is None else (0, self.dev)

        if not self.local:
            local_key: tuple[Any, ...] = (0,)
        else:
            local_key = (
                1,
                tuple(
                    (0, seg, "") if isinstance(seg, int) else (1, 0, seg)
                    for seg in self.local
                ),
            )

        return (
            self.epoch,
            _strip_trailing_zeros(self.release),
            pre_key,
            post_key,
            dev_key,
            local_key,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key == other.sort_key

    def __hash__(self) -> int:
        return hash(self.sort_key)

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __le__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key <= other.sort_key

    def __gt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key > other.sort_key

    def __ge__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key >= other.sort_key

    # -- Rendering ------------------------------------------------------------

    def __str__(self) -> str:
        parts: list[str] = []
        if self.epoch:
            parts.append(f"{self.epoch}!")
        parts.append(".".join(str(seg) for seg in self.release))
        if self.pre is not None:
            parts.append(f"{self.pre[0]}{self.pre[1]}")
        if self.post is not None:
            parts.append(f".post{self.post}")
        if self.dev is not None:
            parts.append(f".dev{self.dev}")
        if self.local:
            parts.append("+" + ".".join(str(seg) for seg in self.local))
        return "".join(parts)

    def __repr__(self) -> str:
        return f"<Version({str(self)!r})>"


def parse_version(text: str) -> Version:
    """Parse ``text`` into a ``Version``. See ``Version.parse``."""
    return Version.parse(text)


def is_valid_version(text: str) -> bool:
    """Return True if ``text`` parses as a version."""
    try:
        Version.parse(text)
    except InvalidVersion:
        return False
    return True
