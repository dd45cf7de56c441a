"""Project manifest (``pyproject.toml``) loading and round-trip editing."""

from lockstep.core.manifest.manifest import GROUPS_KEY, MANIFEST_FILENAME, TOOL_TABLE, Manifest

__all__ = ["GROUPS_KEY", "MANIFEST_FILENAME", "Manifest", "TOOL_TABLE"]
