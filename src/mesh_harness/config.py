"""Environment file loading and auto-discovery for mesh-harness.

Searches for ``mesh-harness.yaml`` in the current directory and parent
directories, parses it into an ``Environment``, applies defaults and
``MESH_HARNESS_*`` environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from mesh_harness.errors import ConfigInvalidError, ConfigNotFoundError, ConfigParseError
from mesh_harness.models import Environment

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "mesh-harness.yaml"
ENV_PREFIX = "MESH_HARNESS_"

DEFAULT_CLUSTER = {"provider": "kind", "name": "mesh-test", "version": "1.27.0"}

# Environment variable suffix -> key in the ``global`` section.
ENV_OVERRIDES = {
    "LOG_LEVEL": "log_level",
    "TIMEOUT": "timeout",
    "WORKING_DIR": "working_dir",
}


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``mesh-harness.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
    environ: Mapping[str, str] | None = None,
) -> Environment:
    """Load an environment description.

    Resolution order:

    1. Explicit *path* (``ConfigNotFoundError`` if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Defaults only.

    ``MESH_HARNESS_*`` variables from *environ* (default ``os.environ``)
    override the ``global`` section either way.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            raise ConfigNotFoundError(f"config file not found: {config_path}")
    elif auto_discover:
        config_path = find_config()

    data: dict[str, Any] = {}
    if config_path is not None:
        logger.debug("Loading config from %s", config_path)
        data = _read_yaml(config_path)

    _apply_defaults(data)
    _apply_env_overrides(data, os.environ if environ is None else environ)
    try:
        return Environment.model_validate(data)
    except ValidationError as exc:
        raise ConfigInvalidError(f"invalid environment configuration: {exc}") from exc


def parse_config(text: str) -> Environment:
    """Parse an environment from YAML text. No defaults or overrides applied."""
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigParseError("failed to parse config", cause=exc) from exc
    if not isinstance(data, dict):
        raise ConfigParseError(f"expected a YAML mapping, got {type(data).__name__}")
    try:
        return Environment.model_validate(data)
    except ValidationError as exc:
        raise ConfigInvalidError(f"invalid environment configuration: {exc}") from exc


def dump_config(env: Environment, path: str | Path) -> None:
    """Write *env* as YAML that ``load_config`` reads back unchanged."""
    data = env.model_dump(mode="json", by_alias=True)
    Path(path).write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


# --- Private: helpers ---


def _read_yaml(config_path: Path) -> dict[str, Any]:
    text = config_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"failed to parse {config_path}", cause=exc) from exc

    if not isinstance(data, dict):
        raise ConfigParseError(
            f"expected a YAML mapping in {config_path}, got {type(data).__name__}",
        )
    return data


def _apply_defaults(data: dict[str, Any]) -> None:
    if data.get("clusters"):
        return
    cluster = data.get("cluster")
    if cluster is None:
        cluster = data["cluster"] = {}
    if isinstance(cluster, dict):
        for key, value in DEFAULT_CLUSTER.items():
            cluster.setdefault(key, value)


def _apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> None:
    settings = data.get("global")
    if settings is None:
        settings = data["global"] = {}
    if not isinstance(settings, dict):
        return
    for suffix, key in ENV_OVERRIDES.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            logger.debug("Overriding global.%s from %s%s", key, ENV_PREFIX, suffix)
            settings[key] = value
