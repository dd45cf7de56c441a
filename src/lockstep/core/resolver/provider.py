"""Metadata provider interface and package candidates.

The resolver never talks to an index directly. It consumes a
``MetadataProvider`` that answers two questions:

- which versions of a package exist (``list_versions``), and
- what a given version depends on (``get_dependencies``).

Either call may raise ``PackageNotFound`` (permanent) or
``TransientFetchError`` (retryable, already retried by the provider).
``InMemoryProvider`` is a dict-backed implementation for tests and offline
use; the HTTP index provider lives in ``lockstep.index``.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from lockstep.core.requirements import Requirement, canonicalize_name
from lockstep.core.versioning import Version
from lockstep.exceptions import PackageNotFound

# ---------------------------------------------------------------------------
# PackageCandidate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PackageCandidate:
    """One concrete version of a package together with its metadata.

    Attributes:
        name: Normalized package name.
        version: The candidate version.
        dependencies: Declared requirements, in declaration order, including
            those gated by markers or extras.
        extras_provided: Extra names the candidate's dependency markers
            refer to.
    """

    name: str
    version: Version
    dependencies: tuple[Requirement, ...] = ()
    extras_provided: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls, name: str, version: Version, dependencies: Iterable[Requirement]
    ) -> PackageCandidate:
        deps = tuple(dependencies)
        extras: set[str] = set()
        for dep in deps:
            if dep.marker is not None:
                extras |= dep.marker.extras()
        return cls(name, version, deps, frozenset(extras))

    def active_dependencies(
        self, environment: Mapping[str, str], extras: Iterable[str] = ()
    ) -> list[Requirement]:
        """Dependencies that apply in ``environment`` with ``extras`` requested."""
        extras = tuple(extras)
        return [dep for dep in self.dependencies if dep.is_applicable(environment, extras)]

    def __str__(self) -> str:
        return f"{self.name}=={self.version}"


# ---------------------------------------------------------------------------
# Provider interface
# ---------------------------------------------------------------------------


class MetadataProvider(ABC):
    """Source of package versions and dependency metadata.

    Implementations must be safe to call from several threads at once;
    the resolver's cache prefetches independent names concurrently.
    """

    @abstractmethod
    def list_versions(self, name: str) -> Sequence[Version]:
        """Return every available version of ``name``, in any order.

        Raises:
            PackageNotFound: If the package does not exist.
            TransientFetchError: If the lookup failed after retries.
        """

    @abstractmethod
    def get_dependencies(self, name: str, version: Version) -> Sequence[Requirement]:
        """Return the requirements declared by ``name`` at ``version``.

        Raises:
            PackageNotFound: If the package or version does not exist.
            TransientFetchError: If the lookup failed after retries.
        """

    def get_hashes(self, name: str, version: Version) -> Sequence[str]:
        """Return ``sha256:<hex>`` digests of the release's files, if known."""
        return []


class InMemoryProvider(MetadataProvider):
    """Dict-backed provider.

    Example::

        provider = InMemoryProvider({
            "app-lib": {"1.0": ["requests>=2"], "1.1": ["requests>=2.5"]},
            "requests": {"2.0": [], "2.31.0": ['pysocks; extra == "socks"']},
        })

    ``calls`` counts lookups per ``(method, name)`` so tests can assert that
    the cache avoids duplicate work.
    """

    def __init__(
        self,
        packages: Mapping[str, Mapping[str, Iterable[str | Requirement]]] | None = None,
    ) -> None:
        self._packages: dict[str, dict[Version, tuple[Requirement, ...]]] = {}
        self._lock = threading.Lock()
        self.calls: Counter[tuple[str, str]] = Counter()
        for name, versions in (packages or {}).items():
            for version, deps in versions.items():
                self.add(name, version, deps)

    def add(
        self,
        name: str,
        version: str | Version,
        dependencies: Iterable[str | Requirement] = (),
    ) -> None:
        """Register ``name`` at ``version`` with its dependencies."""
        if isinstance(version, str):
            version = Version.parse(version)
        reqs = tuple(
            dep if isinstance(dep, Requirement) else Requirement.parse(dep)
            for dep in dependencies
        )
        self._packages.setdefault(canonicalize_name(name), {})[version] = reqs

    def list_versions(self, name: str) -> list[Version]:
        with self._lock:
            self.calls[("list_versions", name)] += 1
        versions = self._packages.get(name)
        if versions is None:
            raise PackageNotFound(name)
        return list(versions)

    def get_dependencies(self, name: str, version: Version) -> list[Requirement]:
        with self._lock:
            self.calls[("get_dependencies", name)] += 1
        versions = self._packages.get(name)
        if versions is None or version not in versions:
            raise PackageNotFound(name, str(version))
        return list(versions[version])
