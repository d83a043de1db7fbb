"""Configuration loading: layered YAML files, ``${ENV}`` expansion, validation.

Without an explicit path two files are layered: the user config
(``~/.argfolio/config.yaml``) holds personal settings such as the timezone
and broker commissions, and a project ``argfolio.yaml`` in the working
directory is deep-merged over it. ``ARGFOLIO_DB`` overrides the database
path last, so tests and scripts can point at a scratch store.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from argfolio.config.schema import ArgfolioConfig

logger = logging.getLogger(__name__)

USER_CONFIG = Path("~/.argfolio/config.yaml")
PROJECT_CONFIG = Path("argfolio.yaml")
DB_ENV_VAR = "ARGFOLIO_DB"

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


class ConfigError(Exception):
    """A config file could not be parsed or failed validation."""

    def __init__(self, message: str, sources: list[Path] | None = None):
        self.sources = sources or []
        if self.sources:
            message = f"{message} (from {', '.join(str(p) for p in self.sources)})"
        super().__init__(message)


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Nested dicts merge key by key; any other value in ``override`` replaces."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def config_sources(path: str | Path | None = None) -> list[Path]:
    """Files that ``load_config(path)`` reads, lowest precedence first."""
    if path is not None:
        explicit = Path(path).expanduser()
        if explicit.exists():
            return [explicit]
        logger.warning("Config file not found: %s", explicit)
        return []

    return [p.expanduser() for p in (USER_CONFIG, PROJECT_CONFIG) if p.expanduser().exists()]


def _read_layer(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", [path]) from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Top level must be a mapping", [path])
    return _expand_env_vars(raw)


def load_config(path: str | Path | None = None) -> ArgfolioConfig:
    """Load and validate configuration.

    An explicit ``path`` is read on its own. Otherwise the user config and
    the project ``argfolio.yaml`` are layered; with neither present the
    built-in defaults apply.

    Raises:
        ConfigError: unreadable YAML or values rejected by the schema.
    """
    sources = config_sources(path)
    raw: dict[str, Any] = {}
    for source in sources:
        logger.info("Loading config layer %s", source)
        raw = _deep_merge(raw, _read_layer(source))
    if not sources:
        logger.info("No config file found, using defaults")

    db_override = os.environ.get(DB_ENV_VAR)
    if db_override:
        raw = _deep_merge(raw, {"database": {"path": db_override}})

    try:
        config = ArgfolioConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}", sources) from e
    logger.debug("Config loaded: version=%d, layers=%d", config.version, len(sources))
    return config


def resolve_path(path_str: str) -> Path:
    """Resolve a path from config, expanding ~ and making absolute."""
    return Path(path_str).expanduser().resolve()
