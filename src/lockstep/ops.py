"""Project-level operations driven by the CLI.

Every operation takes a ``Workspace`` (project root, settings, metadata
provider, target environment) and follows one rule: the manifest and lock
are only written after resolution succeeded. A failed ``add`` leaves both
files as they were, and a failed ``lock`` never replaces the previous lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from lockstep.config import Settings, load_settings
from lockstep.core.lockfile import Lockfile
from lockstep.core.manifest import MANIFEST_FILENAME, Manifest
from lockstep.core.requirements import Requirement, canonicalize_name, default_environment
from lockstep.core.resolver import MetadataProvider, Resolution, Resolver
from lockstep.core.versioning import SpecifierSet, Version
from lockstep.environment import PythonEnvironment
from lockstep.exceptions import InvalidVersion, LockError, LockParseError, ManifestError
from lockstep.index import PyPIProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@dataclass
class Workspace:
    """A project directory and everything needed to operate on it.

    Attributes:
        root: Directory holding ``pyproject.toml``.
        settings: Effective settings.
        provider: Metadata source; a ``PyPIProvider`` built from
            ``settings`` when None.
        environment: Target marker environment; the running interpreter's
            when None.
    """

    root: Path
    settings: Settings = field(default_factory=Settings)
    provider: MetadataProvider | None = None
    environment: dict[str, str] | None = None

    @classmethod
    def discover(
        cls,
        start: Path | None = None,
        *,
        provider: MetadataProvider | None = None,
        environment: dict[str, str] | None = None,
    ) -> Workspace:
        """Find the project containing ``start`` and load its settings.

        Raises:
            ManifestError: If no ``pyproject.toml`` exists in ``start`` or
                any parent directory.
        """
        start = Path(start or Path.cwd()).resolve()
        for directory in (start, *start.parents):
            if (directory / MANIFEST_FILENAME).is_file():
                manifest = Manifest.load(directory / MANIFEST_FILENAME)
                settings = load_settings(manifest.tool_settings())
                return cls(directory, settings, provider, environment)
        raise ManifestError(f"No {MANIFEST_FILENAME} found in {start} or its parents")

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.root / self.settings.lock_filename

    @property
    def venv(self) -> PythonEnvironment:
        return PythonEnvironment(self.root / self.settings.venv_dir)

    @property
    def marker_environment(self) -> dict[str, str]:
        if self.environment is None:
            self.environment = default_environment()
        return self.environment

    def get_provider(self) -> MetadataProvider:
        if self.provider is None:
            self.provider = PyPIProvider(
                self.settings.index_url,
                timeout=self.settings.timeout,
                retries=self.settings.retries,
            )
        return self.provider

    def load_manifest(self) -> Manifest:
        return Manifest.load(self.manifest_path)

    def read_lock(self) -> Lockfile | None:
        """The current lock, or None when there is none yet."""
        try:
            return Lockfile.read(self.lock_path)
        except FileNotFoundError:
            return None

    def resolver(self, allow_prereleases: bool | None = None) -> Resolver:
        if allow_prereleases is None:
            allow_prereleases = self.settings.allow_prereleases
        return Resolver(
            self.get_provider(),
            self.marker_environment,
            allow_prereleases=allow_prereleases,
            max_rounds=self.settings.max_rounds,
            workers=self.settings.workers,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class LockOutcome:
    """What a locking operation produced."""

    lockfile: Lockfile
    resolution: Resolution
    path: Path
    changes: dict[str, Any]


@dataclass
class InstallOutcome:
    installed: list[str]
    unchanged: list[str]
    relocked: bool
    lock: LockOutcome | None = None


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


def _previous_lock(workspace: Workspace) -> Lockfile | None:
    try:
        return workspace.read_lock()
    except LockParseError as exc:
        logger.warning("Ignoring unreadable lock %s: %s", workspace.lock_path, exc)
        return None


def _resolve_and_lock(
    workspace: Workspace,
    manifest: Manifest,
    *,
    groups: Iterable[str],
    previous: Lockfile | None,
    keep: Iterable[str] | None,
    allow_prereleases: bool | None,
) -> tuple[Lockfile, Resolution]:
    groups = sorted(set(groups))
    preferred = {}
    if previous is not None:
        locked = previous.versions()
        names = locked if keep is None else [n for n in locked if n in set(keep)]
        for name in names:
            try:
                preferred[name] = Version.parse(locked[name])
            except InvalidVersion:
                logger.debug("Not preferring unparseable locked version %s", locked[name])
    resolver = workspace.resolver(allow_prereleases)
    resolution = resolver.resolve(manifest.root_requirements(groups), preferred=preferred)
    provider = workspace.get_provider()
    hashes = {
        name: provider.get_hashes(name, version)
        for name, version in resolution.mapping.items()
    }
    lockfile = Lockfile.from_resolution(resolution, manifest, groups=groups, hashes=hashes)
    return lockfile, resolution


def _write_lock(
    workspace: Workspace, lockfile: Lockfile, resolution: Resolution, previous: Lockfile | None
) -> LockOutcome:
    changes = (previous or Lockfile()).diff(lockfile)
    lockfile.write(workspace.lock_path)
    logger.info("Locked %d packages in %s", lockfile.package_count, workspace.lock_path)
    return LockOutcome(lockfile, resolution, workspace.lock_path, changes)


def lock_project(
    workspace: Workspace,
    *,
    groups: Iterable[str] | None = None,
    allow_prereleases: bool | None = None,
) -> LockOutcome:
    """Resolve the manifest and write the lock.

    Versions from an existing lock are preferred when still allowed, so
    unrelated packages do not move.

    Args:
        groups: Groups to include; those of the existing lock when None.
    """
    manifest = workspace.load_manifest()
    previous = _previous_lock(workspace)
    if groups is None:
        groups = previous.metadata.groups if previous is not None else ()
    lockfile, resolution = _resolve_and_lock(
        workspace, manifest, groups=groups, previous=previous, keep=None,
        allow_prereleases=allow_prereleases,
    )
    return _write_lock(workspace, lockfile, resolution, previous)


def update_project(
    workspace: Workspace,
    names: Iterable[str] = (),
    *,
    groups: Iterable[str] | None = None,
    allow_prereleases: bool | None = None,
) -> LockOutcome:
    """Re-resolve, moving ``names`` (every package when empty) to their newest allowed versions."""
    manifest = workspace.load_manifest()
    previous = _previous_lock(workspace)
    if groups is None:
        groups = previous.metadata.groups if previous is not None else ()
    targets = {canonicalize_name(n) for n in names}
    keep = None
    if previous is not None:
        keep = [] if not targets else [n for n in previous.package_names if n not in targets]
    lockfile, resolution = _resolve_and_lock(
        workspace, manifest, groups=groups, previous=previous, keep=keep,
        allow_prereleases=allow_prereleases,
    )
    return _write_lock(workspace, lockfile, resolution, previous)


# ---------------------------------------------------------------------------
# Manifest edits
# ---------------------------------------------------------------------------


def add_dependencies(
    workspace: Workspace,
    requirements: Iterable[str | Requirement],
    *,
    group: str | None = None,
    allow_prereleases: bool | None = None,
) -> LockOutcome:
    """Add requirements to the manifest and re-lock.

    A requirement given without a version constraint is recorded as
    ``>=<resolved version>``. Nothing is written unless resolution succeeds.

    Raises:
        InvalidRequirement: For a malformed requirement string.
        ResolutionConflict: If the new set cannot be resolved.
    """
    reqs = [r if isinstance(r, Requirement) else Requirement.parse(r) for r in requirements]
    manifest = workspace.load_manifest()
    previous = _previous_lock(workspace)
    groups = set(previous.metadata.groups) if previous is not None else set()
    if group is not None:
        groups.add(group)

    for req in reqs:
        manifest.add_dependency(req, group)
    lockfile, resolution = _resolve_and_lock(
        workspace, manifest, groups=groups, previous=previous, keep=None,
        allow_prereleases=allow_prereleases,
    )

    pinned = [r for r in reqs if not r.specifier and r.name in resolution.candidates]
    for req in pinned:
        version = resolution.candidates[req.name].version
        manifest.add_dependency(req.with_specifier(SpecifierSet(f">={version}")), group)
    if pinned:
        lockfile.metadata.manifest_fingerprint = manifest.fingerprint()

    manifest.save()
    return _write_lock(workspace, lockfile, resolution, previous)


def remove_dependencies(workspace: Workspace, names: Iterable[str]) -> LockOutcome:
    """Remove packages from every dependency list and re-lock."""
    manifest = workspace.load_manifest()
    previous = _previous_lock(workspace)
    for name in names:
        if not manifest.remove_dependency(name):
            logger.warning("%s is not a dependency of %s", name, manifest.name)
    groups = [g for g in (previous.metadata.groups if previous else ()) if g in manifest.groups]
    lockfile, resolution = _resolve_and_lock(
        workspace, manifest, groups=groups, previous=previous, keep=None,
        allow_prereleases=None,
    )
    manifest.save()
    return _write_lock(workspace, lockfile, resolution, previous)


# ---------------------------------------------------------------------------
# Install and inspection
# ---------------------------------------------------------------------------


def install_project(
    workspace: Workspace,
    *,
    groups: Iterable[str] = (),
    refresh_lock: bool = True,
    interpreter: str | None = None,
) -> InstallOutcome:
    """Install the locked packages into the project's virtual environment.

    A missing or stale lock is re-created first unless ``refresh_lock`` is
    False, in which case ``LockError`` is raised.
    """
    groups = sorted(set(groups))
    manifest = workspace.load_manifest()
    lockfile = workspace.read_lock()
    lock_outcome = None
    if lockfile is None or lockfile.is_stale(manifest, groups):
        if not refresh_lock:
            state = "missing" if lockfile is None else "out of date"
            raise LockError(f"Lock file {workspace.lock_path} is {state}; run 'lockstep lock'")
        previous_groups = lockfile.metadata.groups if lockfile is not None else []
        lock_outcome = lock_project(workspace, groups=sorted(set(previous_groups) | set(groups)))
        lockfile = lock_outcome.lockfile

    venv = workspace.venv
    venv.ensure(interpreter)
    present = venv.installed()
    todo, unchanged = [], []
    for entry in lockfile.applicable_entries(workspace.marker_environment):
        if present.get(entry.name) == entry.version:
            unchanged.append(entry.pin)
        else:
            todo.append(entry)
    installed = venv.install(todo)
    return InstallOutcome(installed, unchanged, lock_outcome is not None, lock_outcome)


def check_lock(workspace: Workspace, groups: Iterable[str] = ()) -> tuple[str, list[str]]:
    """Report ``("missing" | "stale" | "fresh", validation errors)``."""
    manifest = workspace.load_manifest()
    lockfile = workspace.read_lock()
    if lockfile is None:
        return "missing", []
    errors = lockfile.validate()
    if lockfile.is_stale(manifest, groups):
        return "stale", errors
    return "fresh", errors


def project_version(workspace: Workspace) -> tuple[str, str | None]:
    """The project's name and version from the manifest."""
    manifest = workspace.load_manifest()
    return manifest.name, manifest.version
