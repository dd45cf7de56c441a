"""Project manifest: a PEP 621 ``pyproject.toml``.

The manifest is held as a ``tomlkit`` document so edits made through
``add_dependency`` and ``remove_dependency`` keep the user's comments,
ordering and formatting intact when the file is written back.

Dependency sections read:

- ``[project] dependencies``: the main list.
- ``[project.optional-dependencies]``: extras groups, published with the
  package.
- ``[tool.lockstep.dependency-groups]``: development-only groups, never
  published.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Array, Table

from lockstep.core.requirements import Requirement, canonicalize_name
from lockstep.exceptions import ManifestError, ManifestParseError, ManifestValidationError, ParseError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "pyproject.toml"
TOOL_TABLE = "lockstep"
GROUPS_KEY = "dependency-groups"


def _canonical(req: Requirement) -> str:
    """Requirement rendered with the normalized name, for hashing."""
    return str(replace(req, display_name=""))


class Manifest:
    """Editable view over a ``pyproject.toml`` document.

    Example::

        manifest = Manifest.load(Path("pyproject.toml"))
        manifest.add_dependency(Requirement.parse("httpx>=0.27"))
        manifest.save()
    """

    def __init__(self, document: tomlkit.TOMLDocument, path: Path | None = None) -> None:
        self._doc = document
        self.path = path
        self._validate()

    # -- Loading and saving -------------------------------------------------

    @classmethod
    def loads(cls, text: str, path: Path | None = None) -> Manifest:
        """Parse manifest text.

        Raises:
            ManifestParseError: If ``text`` is not valid TOML.
            ManifestValidationError: If the content is inconsistent.
        """
        try:
            document = tomlkit.parse(text)
        except TOMLKitError as exc:
            where = f" in {path}" if path is not None else ""
            raise ManifestParseError(f"Invalid TOML{where}: {exc}") from exc
        return cls(document, path)

    @classmethod
    def load(cls, path: Path) -> Manifest:
        """Read and parse the manifest at ``path``.

        Raises:
            ManifestError: If the file cannot be read.
            ManifestParseError: If it is not valid TOML.
            ManifestValidationError: If the content is inconsistent.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ManifestError(f"No manifest found at {path}") from exc
        except OSError as exc:
            raise ManifestError(f"Cannot read manifest {path}: {exc}") from exc
        logger.debug("Loading manifest %s", path)
        return cls.loads(text, path)

    @classmethod
    def new(cls, name: str, version: str = "0.1.0") -> Manifest:
        """Create a minimal manifest for a new project."""
        document = tomlkit.document()
        project = tomlkit.table()
        project.add("name", name)
        project.add("version", version)
        project.add("dependencies", tomlkit.array())
        document.add("project", project)
        return cls(document)

    def dumps(self) -> str:
        return tomlkit.dumps(self._doc)

    def save(self, path: Path | None = None) -> None:
        """Write the manifest back to ``path`` (default: where it was loaded from).

        Raises:
            ManifestError: If there is no target path or the write fails.
        """
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ManifestError("Manifest has no path to save to")
        try:
            target.write_text(self.dumps(), encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"Cannot write manifest {target}: {exc}") from exc
        self.path = target
        logger.debug("Saved manifest %s", target)

    # -- Validation ---------------------------------------------------------

    def _validate(self) -> None:
        project = self._doc.get("project")
        if not isinstance(project, dict):
            raise ManifestValidationError("Manifest has no [project] table")
        name = project.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestValidationError("[project] needs a string 'name'")
        self._parse_list(project.get("dependencies", []), "project.dependencies")
        for group, items in self._optional_table().items():
            self._parse_list(items, f"project.optional-dependencies.{group}")
        for group, items in self._groups_table().items():
            self._parse_list(items, f"tool.{TOOL_TABLE}.{GROUPS_KEY}.{group}")

    @staticmethod
    def _parse_list(items: Any, where: str) -> list[Requirement]:
        if not isinstance(items, list):
            raise ManifestValidationError(f"{where} must be a list of requirement strings")
        result: list[Requirement] = []
        seen: dict[str, Requirement] = {}
        for item in items:
            if not isinstance(item, str):
                raise ManifestValidationError(f"{where}: expected a string, got {item!r}")
            try:
                req = Requirement.parse(str(item))
            except ParseError as exc:
                raise ManifestValidationError(f"{where}: {exc}") from exc
            previous = seen.get(req.name)
            if previous is not None and previous.extras != req.extras:
                raise ManifestValidationError(
                    f"{where}: {req.name!r} is listed twice with different extras"
                )
            seen[req.name] = req
            result.append(req)
        return result

    # -- Tables -------------------------------------------------------------

    @property
    def _project(self) -> Table:
        return self._doc["project"]

    def _optional_table(self) -> dict:
        table = self._doc["project"].get("optional-dependencies", {})
        if not isinstance(table, dict):
            raise ManifestValidationError("project.optional-dependencies must be a table")
        return table

    def _tool_table(self) -> dict:
        tool = self._doc.get("tool", {})
        if not isinstance(tool, dict):
            raise ManifestValidationError("[tool] must be a table")
        table = tool.get(TOOL_TABLE, {})
        if not isinstance(table, dict):
            raise ManifestValidationError(f"[tool.{TOOL_TABLE}] must be a table")
        return table

    def _groups_table(self) -> dict:
        table = self._tool_table().get(GROUPS_KEY, {})
        if not isinstance(table, dict):
            raise ManifestValidationError(f"tool.{TOOL_TABLE}.{GROUPS_KEY} must be a table")
        return table

    # -- Project metadata ---------------------------------------------------

    @property
    def name(self) -> str:
        return str(self._project["name"])

    @property
    def version(self) -> str | None:
        value = self._project.get("version")
        return None if value is None else str(value)

    @property
    def requires_python(self) -> str | None:
        value = self._project.get("requires-python")
        return None if value is None else str(value)

    def tool_settings(self) -> dict[str, Any]:
        """The ``[tool.lockstep]`` table without the dependency groups."""
        table = self._tool_table()
        return {str(k): _plain(v) for k, v in table.items() if k != GROUPS_KEY}

    # -- Dependencies -------------------------------------------------------

    @property
    def dependencies(self) -> list[Requirement]:
        return self._parse_list(self._project.get("dependencies", []), "project.dependencies")

    @property
    def optional_dependencies(self) -> dict[str, list[Requirement]]:
        return {
            str(group): self._parse_list(items, f"project.optional-dependencies.{group}")
            for group, items in self._optional_table().items()
        }

    @property
    def dependency_groups(self) -> dict[str, list[Requirement]]:
        return {
            str(group): self._parse_list(items, f"tool.{TOOL_TABLE}.{GROUPS_KEY}.{group}")
            for group, items in self._groups_table().items()
        }

    @property
    def groups(self) -> list[str]:
        """Names of every optional and development group, sorted."""
        return sorted(set(self.optional_dependencies) | set(self.dependency_groups))

    def _group_array(self, group: str | None, *, create: bool = False) -> Array | None:
        if group is None:
            if "dependencies" not in self._project:
                if not create:
                    return None
                self._project.add("dependencies", tomlkit.array())
            return self._project["dependencies"]
        key = canonicalize_name(group)
        for table in (self._optional_table(), self._groups_table()):
            for existing in table:
                if canonicalize_name(str(existing)) == key:
                    return table[existing]
        if not create:
            return None
        if "optional-dependencies" not in self._project:
            self._project.add("optional-dependencies", tomlkit.table())
        array = tomlkit.array()
        self._project["optional-dependencies"].add(group, array)
        return self._project["optional-dependencies"][group]

    def contains_dependency(self, name: str, group: str | None = None) -> bool:
        """True if ``name`` is listed in ``group`` (main list when None)."""
        array = self._group_array(group)
        if array is None:
            return False
        name = canonicalize_name(name)
        return any(Requirement.parse(str(item)).name == name for item in array)

    def add_dependency(self, requirement: Requirement, group: str | None = None) -> None:
        """Add ``requirement`` to ``group`` (main list when None).

        An entry for the same package in that list is replaced in place, so
        its position and surrounding comments are kept. A group that does not
        exist yet is created under ``[project.optional-dependencies]``.
        """
        array = self._group_array(group, create=True)
        text = str(requirement)
        for index, item in enumerate(array):
            if Requirement.parse(str(item)).name == requirement.name:
                array[index] = text
                logger.debug("Replaced %s with %s", item, text)
                return
        single_line = "\n" not in array.as_string()
        array.append(text)
        # Re-rendering a multiline array drops its standalone comments.
        if single_line and len(array) > 1:
            array.multiline(True)
        logger.debug("Added %s to %s", text, group or "dependencies")

    def remove_dependency(self, name: str) -> bool:
        """Remove ``name`` from the main list and from every group.

        Returns:
            True if at least one entry was removed.
        """
        name = canonicalize_name(name)
        arrays = [self._group_array(None)]
        arrays += [self._optional_table()[g] for g in self._optional_table()]
        arrays += [self._groups_table()[g] for g in self._groups_table()]
        removed = False
        for array in arrays:
            if array is None:
                continue
            for index in reversed(range(len(array))):
                if Requirement.parse(str(array[index])).name == name:
                    del array[index]
                    removed = True
        return removed

    def root_requirements(
        self, groups: Iterable[str] | None = (), *, include_all: bool = False
    ) -> list[Requirement]:
        """Requirements to resolve: the main list plus the named groups.

        Identical entries are listed once, in declaration order. A group
        entry naming the project itself (``myproject[test]``) pulls in the
        referenced groups instead of the project.

        Raises:
            ManifestValidationError: If a requested group does not exist.
        """
        available = {canonicalize_name(g): g for g in self.groups}
        optional = self.optional_dependencies
        dev = self.dependency_groups
        wanted = list(self.groups) if include_all or groups is None else list(groups)

        result: list[Requirement] = []
        visited: set[str] = set()
        own_name = canonicalize_name(self.name)

        def extend(requirements: Iterable[Requirement]) -> None:
            for req in requirements:
                if req.name == own_name:
                    for extra in sorted(req.extras):
                        expand(extra)
                elif req not in result:
                    result.append(req)

        def expand(group: str) -> None:
            key = canonicalize_name(group)
            if key not in available:
                raise ManifestValidationError(f"Unknown dependency group {group!r}")
            if key in visited:
                return
            visited.add(key)
            real = available[key]
            extend(optional.get(real, []) + dev.get(real, []))

        extend(self.dependencies)
        for group in wanted:
            expand(group)
        return result

    # -- Fingerprint --------------------------------------------------------

    def fingerprint(self) -> str:
        """``sha256:<hex>`` over the dependency sections.

        Order of entries, spelling of names and formatting do not affect the
        result; any change to what is required does.
        """
        payload = {
            "dependencies": sorted(_canonical(r) for r in self.dependencies),
            "optional-dependencies": {
                canonicalize_name(g): sorted(_canonical(r) for r in reqs)
                for g, reqs in self.optional_dependencies.items()
            },
            "dependency-groups": {
                canonicalize_name(g): sorted(_canonical(r) for r in reqs)
                for g, reqs in self.dependency_groups.items()
            },
            "requires-python": self.requires_python,
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        return f"Manifest({self.name!r}, path={self.path!r})"


def _plain(value: Any) -> Any:
    """Convert tomlkit items into plain Python values."""
    unwrap = getattr(value, "unwrap", None)
    return unwrap() if callable(unwrap) else value
