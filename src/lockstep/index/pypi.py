"""Metadata provider backed by a PyPI-compatible JSON API.

Endpoints used::

    {index}/{name}/json            -> releases and their files
    {index}/{name}/{version}/json  -> requires_dist and file digests

Releases whose every file is yanked, or that have no files at all, are not
offered. Version strings and requirement strings the index publishes that
do not parse are skipped with a warning rather than failing the run.

Usage::

    with PyPIProvider("https://pypi.org/pypi") as provider:
        Resolver(provider).resolve([Requirement.parse("httpx")])
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from lockstep.core.requirements import Requirement, canonicalize_name
from lockstep.core.resolver.provider import MetadataProvider
from lockstep.core.versioning import Version
from lockstep.exceptions import InvalidVersion, PackageNotFound, ParseError
from lockstep.index.http_client import IndexClient

logger = logging.getLogger(__name__)

DEFAULT_INDEX_URL: str = "https://pypi.org/pypi"


def _installable(files: list[dict[str, Any]]) -> bool:
    return any(not f.get("yanked", False) for f in files)


class PyPIProvider(MetadataProvider):
    """``MetadataProvider`` for the PyPI JSON API.

    Args:
        index_url: Base URL of the JSON API (no trailing ``/``).
        client: HTTP client; one is created from ``client_options`` if None.
        **client_options: Passed to ``IndexClient`` (timeout, retries,
            backoff, transport).
    """

    def __init__(
        self,
        index_url: str = DEFAULT_INDEX_URL,
        client: IndexClient | None = None,
        **client_options: Any,
    ) -> None:
        self.index_url = index_url.rstrip("/")
        self._client = client or IndexClient(**client_options)
        self._lock = threading.Lock()
        self._raw_versions: dict[tuple[str, Version], str] = {}
        self._release_data: dict[tuple[str, Version], dict[str, Any]] = {}

    # -- MetadataProvider -------------------------------------------------------

    def list_versions(self, name: str) -> list[Version]:
        name = canonicalize_name(name)
        data = self._client.get_json(f"{self.index_url}/{name}/json")
        if data is None:
            raise PackageNotFound(name)
        releases = data.get("releases") or {}
        versions: list[Version] = []
        for raw, files in releases.items():
            if not _installable(files or []):
                continue
            try:
                version = Version.parse(raw)
            except InvalidVersion:
                logger.warning("Skipping unparseable version %r of %s", raw, name)
                continue
            with self._lock:
                self._raw_versions[(name, version)] = raw
            versions.append(version)
        return versions

    def get_dependencies(self, name: str, version: Version) -> list[Requirement]:
        data = self._release(name, version)
        requires = (data.get("info") or {}).get("requires_dist") or []
        result: list[Requirement] = []
        for text in requires:
            try:
                result.append(Requirement.parse(text))
            except ParseError as exc:
                logger.warning("Skipping requirement %r of %s==%s: %s", text, name, version, exc)
        return result

    # -- Extras -----------------------------------------------------------------

    def get_hashes(self, name: str, version: Version) -> list[str]:
        """``sha256:<hex>`` digests of the non-yanked files of a release."""
        data = self._release(name, version)
        hashes = []
        for f in data.get("urls") or []:
            digest = (f.get("digests") or {}).get("sha256")
            if digest and not f.get("yanked", False):
                hashes.append(f"sha256:{digest}")
        return sorted(set(hashes))

    def _release(self, name: str, version: Version) -> dict[str, Any]:
        name = canonicalize_name(name)
        key = (name, version)
        with self._lock:
            cached = self._release_data.get(key)
            raw = self._raw_versions.get(key, version.raw or str(version))
        if cached is not None:
            return cached
        data = self._client.get_json(f"{self.index_url}/{name}/{raw}/json")
        if data is None:
            raise PackageNotFound(name, str(version))
        with self._lock:
            return self._release_data.setdefault(key, data)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PyPIProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
