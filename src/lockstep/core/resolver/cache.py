"""Per-run metadata cache with concurrent prefetch.

One ``MetadataCache`` belongs to one resolution run. It memoizes version
lists by name and candidates by ``(name, version)``, so the search can
revisit a package after backtracking without going back to the provider.

``prefetch`` fans independent ``list_versions`` lookups out over a thread
pool. Results are merged with insert-if-absent semantics under a lock, so
a concurrent prefetch and a sequential lookup of the same name never store
different answers. Transient failures during prefetch are not cached; the
sequential lookup made by the resolver repeats the call and surfaces the
error in order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

from lockstep.core.resolver.provider import MetadataProvider, PackageCandidate
from lockstep.core.versioning import Version
from lockstep.exceptions import MetadataError, PackageNotFound

logger = logging.getLogger(__name__)

DEFAULT_WORKERS: int = 8


class MetadataCache:
    """Memoizing front for a ``MetadataProvider``.

    Args:
        provider: The metadata source.
        workers: Thread pool size for ``prefetch``. 1 disables concurrency.
    """

    def __init__(self, provider: MetadataProvider, *, workers: int = DEFAULT_WORKERS) -> None:
        self._provider = provider
        self._workers = max(1, workers)
        self._lock = threading.Lock()
        self._versions: dict[str, tuple[Version, ...]] = {}
        self._missing: set[str] = set()
        self._candidates: dict[tuple[str, Version], PackageCandidate] = {}
        self._broken: set[tuple[str, Version]] = set()
        self.hits = 0
        self.misses = 0

    @property
    def provider(self) -> MetadataProvider:
        return self._provider

    # -- Versions ---------------------------------------------------------------

    def _store_versions(self, name: str, versions: Iterable[Version]) -> tuple[Version, ...]:
        ordered = tuple(sorted(set(versions), reverse=True))
        with self._lock:
            return self._versions.setdefault(name, ordered)

    def _mark_missing(self, name: str) -> None:
        with self._lock:
            self._missing.add(name)

    def is_cached(self, name: str) -> bool:
        with self._lock:
            return name in self._versions or name in self._missing

    def list_versions(self, name: str) -> tuple[Version, ...]:
        """Return the versions of ``name``, newest first.

        Raises:
            PackageNotFound: If the provider does not know ``name``.
            TransientFetchError: If the provider lookup failed.
        """
        with self._lock:
            if name in self._missing:
                self.hits += 1
                raise PackageNotFound(name)
            cached = self._versions.get(name)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1
        logger.debug("Fetching versions of %s", name)
        try:
            versions = self._provider.list_versions(name)
        except PackageNotFound:
            self._mark_missing(name)
            raise
        return self._store_versions(name, versions)

    def prefetch(self, names: Iterable[str]) -> None:
        """Fetch version lists for ``names`` concurrently.

        Names already cached are skipped. Never raises for lookup failures:
        missing packages are recorded, and any other metadata error is left
        for the next sequential lookup to raise.
        """
        todo = sorted({n for n in names if not self.is_cached(n)})
        if not todo:
            return
        if self._workers == 1 or len(todo) == 1:
            for name in todo:
                self._prefetch_one(name)
            return

        logger.debug("Prefetching %d packages with %d workers", len(todo), self._workers)
        with ThreadPoolExecutor(max_workers=min(self._workers, len(todo))) as pool:
            futures = {
                pool.submit(self._provider.list_versions, name): name for name in todo
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    self._store_versions(name, future.result())
                except PackageNotFound:
                    self._mark_missing(name)
                except MetadataError as exc:
                    logger.debug("Prefetch of %s failed, will retry: %s", name, exc)

    def _prefetch_one(self, name: str) -> None:
        try:
            self._store_versions(name, self._provider.list_versions(name))
        except PackageNotFound:
            self._mark_missing(name)
        except MetadataError as exc:
            logger.debug("Prefetch of %s failed, will retry: %s", name, exc)

    # -- Candidates -------------------------------------------------------------

    def get_candidate(self, name: str, version: Version) -> PackageCandidate:
        """Return the candidate for ``name`` at ``version``, fetching if needed.

        Raises:
            PackageNotFound: If the provider has no metadata for the pair. The
                pair is remembered as broken for the rest of the run.
            TransientFetchError: If the provider lookup failed.
        """
        key = (name, version)
        with self._lock:
            cached = self._candidates.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1
        logger.debug("Fetching dependencies of %s==%s", name, version)
        try:
            deps = self._provider.get_dependencies(name, version)
        except PackageNotFound:
            with self._lock:
                self._broken.add(key)
            raise
        candidate = PackageCandidate.build(name, version, deps)
        with self._lock:
            return self._candidates.setdefault(key, candidate)

    def is_broken(self, name: str, version: Version) -> bool:
        """True if metadata for this pair is known to be unavailable."""
        with self._lock:
            return (name, version) in self._broken
