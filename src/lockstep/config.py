"""Runtime settings.

``Settings`` is assembled from four sources, later ones winning:

1. built-in defaults,
2. a YAML file (``$LOCKSTEP_CONFIG`` or ``~/.config/lockstep/config.yaml``),
3. the ``[tool.lockstep]`` table of the project manifest,
4. ``LOCKSTEP_*`` environment variables (``LOCKSTEP_INDEX_URL``,
   ``LOCKSTEP_TIMEOUT``, ...).

Keys may be spelled with ``-`` or ``_``. Unknown keys are ignored with a
warning; values of the wrong type raise ``ConfigError``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from lockstep.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LOCKSTEP_CONFIG"
ENV_PREFIX = "LOCKSTEP_"
DEFAULT_CONFIG_PATH = Path("~/.config/lockstep/config.yaml")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class Settings:
    """Effective configuration for one invocation.

    Attributes:
        index_url: Base URL of the PyPI JSON API.
        timeout: HTTP timeout in seconds.
        retries: Retries for transient index failures.
        workers: Metadata prefetch threads.
        allow_prereleases: Consider pre-releases for every package.
        venv_dir: Virtual environment location, relative to the project.
        lock_filename: Name of the lock file in the project root.
        max_rounds: Resolver attempt limit.
    """

    index_url: str = "https://pypi.org/pypi"
    timeout: float = 30.0
    retries: int = 3
    workers: int = 8
    allow_prereleases: bool = False
    venv_dir: str = ".venv"
    lock_filename: str = "lockstep.lock"
    max_rounds: int = 10_000

    def merge(self, values: Mapping[str, Any], source: str) -> Settings:
        """Return a copy with ``values`` applied, coercing and checking types."""
        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for raw_key, value in values.items():
            key = str(raw_key).replace("-", "_").lower()
            if key not in known:
                logger.warning("Ignoring unknown setting %r in %s", raw_key, source)
                continue
            changes[key] = _coerce(key, type(getattr(self, key)), value, source)
        return replace(self, **changes) if changes else self


def _coerce(key: str, kind: type, value: Any, source: str) -> Any:
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
    elif kind is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
    elif kind is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
    elif isinstance(value, str):
        return value
    raise ConfigError(f"Setting {key!r} in {source} must be {kind.__name__}, got {value!r}")


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Read a YAML settings file. Missing files yield an empty dict.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _env_values(environ: Mapping[str, str]) -> dict[str, str]:
    return {
        key[len(ENV_PREFIX):]: value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key != CONFIG_ENV_VAR
    }


def load_settings(
    manifest_settings: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    config_path: Path | None = None,
) -> Settings:
    """Build ``Settings`` from every source in precedence order."""
    environ = os.environ if environ is None else environ
    if config_path is None:
        config_path = Path(environ.get(CONFIG_ENV_VAR, str(DEFAULT_CONFIG_PATH)))
    settings = Settings()
    settings = settings.merge(load_yaml_config(config_path), str(config_path))
    if manifest_settings:
        settings = settings.merge(manifest_settings, "[tool.lockstep]")
    settings = settings.merge(_env_values(environ), "environment")
    logger.debug("Effective settings: %s", settings)
    return settings
