"""lockstep exception hierarchy.

All public exceptions inherit from LockstepError, giving callers a single
base class to catch when they want to handle any lockstep-specific failure
without swallowing unrelated errors.
"""

from __future__ import annotations

from typing import Any


class LockstepError(Exception):
    """Base exception for all lockstep errors."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class ParseError(LockstepError, ValueError):
    """Raised when a version, specifier, requirement or marker cannot be parsed.

    Always fatal to the single parse call. Carries the offending text and the
    zero-based position at which parsing stopped making sense.

    Attributes:
        reason: Short description of what was expected.
        text: The full input string.
        position: Offset into ``text`` where the problem was detected.
    """

    def __init__(self, reason: str, text: str, position: int = 0) -> None:
        self.reason = reason
        self.text = text
        self.position = position
        super().__init__(f"{reason} at position {position} in {text!r}")

    @property
    def offending(self) -> str:
        """Return the substring starting at the failure position."""
        return self.text[self.position:]


class InvalidVersion(ParseError):
    """Raised for version strings that do not follow the version scheme."""


class InvalidSpecifier(ParseError):
    """Raised for malformed version specifiers (e.g. ``~=1`` or ``>=1.0.*``)."""


class InvalidRequirement(ParseError):
    """Raised for malformed dependency declarations."""


class InvalidMarker(ParseError):
    """Raised for malformed environment marker expressions."""


# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------


class MetadataError(LockstepError):
    """Raised when package metadata cannot be obtained from a provider."""


class PackageNotFound(MetadataError):
    """Raised when a package (or one of its versions) does not exist.

    Permanent: the resolver treats the affected branch as having no
    candidates and backtracks.
    """

    def __init__(self, name: str, version: str | None = None) -> None:
        self.name = name
        self.version = version
        target = name if version is None else f"{name}=={version}"
        super().__init__(f"Package not found: {target}")


class TransientFetchError(MetadataError):
    """Raised when a metadata fetch failed for a reason that may go away.

    Timeouts, connection resets and server-side errors. Providers retry a
    bounded number of times before raising this.
    """


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class ResolutionError(LockstepError):
    """Raised when dependency resolution does not produce an assignment."""


class ResolutionConflict(ResolutionError):
    """Raised when no version assignment satisfies every requirement.

    Not a defect: a normal outcome reported with the chain of requirements
    that could not be satisfied together.

    Attributes:
        causes: ``ConflictCause`` records, most recent last.
    """

    def __init__(self, causes: list[Any]) -> None:
        self.causes = list(causes)
        if self.causes:
            lines = "; ".join(str(c) for c in self.causes)
            message = f"Could not resolve dependencies: {lines}"
        else:
            message = "Could not resolve dependencies"
        super().__init__(message)


class ResolutionTooDeep(ResolutionError):
    """Raised when the search exceeds its configured number of attempts."""

    def __init__(self, rounds: int) -> None:
        self.rounds = rounds
        super().__init__(f"Resolution gave up after {rounds} attempts")


# ---------------------------------------------------------------------------
# Manifest and lock store
# ---------------------------------------------------------------------------


class ManifestError(LockstepError):
    """Raised when the project manifest cannot be loaded or written."""


class ManifestParseError(ManifestError):
    """Raised when the manifest is not syntactically valid TOML."""


class ManifestValidationError(ManifestError):
    """Raised when the manifest parses but its content is inconsistent.

    Covers a missing ``[project]`` table, non-string dependency entries,
    unparseable requirement strings and duplicate dependency names with
    differing extras in the same list.
    """


class LockError(LockstepError):
    """Raised for lock artifact read, write or consistency failures."""


class LockParseError(LockError):
    """Raised when a lock artifact is not valid JSON or has the wrong shape."""


# ---------------------------------------------------------------------------
# Configuration and environment
# ---------------------------------------------------------------------------


class ConfigError(LockstepError):
    """Raised when a configuration file or variable has an invalid value."""


class PythonEnvironmentError(LockstepError):
    """Raised when a virtual environment cannot be created or modified."""
