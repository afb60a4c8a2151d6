"""YAML project file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from seff.config.schema import ProjectConfig, Settings

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


# Settings field name → environment variable.
_SETTINGS_ENV_MAP: dict[str, str] = {
    "state_file": "SFF_STATE_FILE",
    "state_file_postfix": "SFF_STATE_FILE_POSTFIX",
    "lock_timeout": "SFF_LOCK_TIMEOUT",
    "log": "SFF_LOG",
}


def load_settings(config_dir: Path) -> Settings:
    """Resolve settings from env vars and a ``.env`` file beside the project.

    Priority (highest wins): env var > ``.env`` file > default.
    """
    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    resolved: dict[str, Any] = {}
    for field, env_key in _SETTINGS_ENV_MAP.items():
        val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    try:
        return Settings(**resolved)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def _resolve_state_path(raw: dict[str, Any], name: str, settings: Settings, config_dir: Path) -> Path:
    """Explicit ``state_path`` > ``SFF_STATE_FILE`` > ``<name><postfix>`` beside the project."""
    if raw.get("state_path") is not None:
        path = Path(raw["state_path"])
    elif settings.state_file is not None:
        path = settings.state_file
    else:
        path = Path(f"{name}{settings.state_file_postfix}")
    return path if path.is_absolute() else config_dir / path


def load_config(path: Path | str) -> ProjectConfig:
    """Load a YAML project file and return a ``ProjectConfig``.

    Raises:
        ConfigError: On YAML parse errors, missing sections, or validation failures.
    """
    path = Path(path)

    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    config_dir = path.parent
    settings = load_settings(config_dir)
    name = raw.get("name", path.stem)

    try:
        raw["name"] = name
        raw["state_path"] = _resolve_state_path(raw, str(name), settings, config_dir)
        raw.setdefault("lock_timeout", settings.lock_timeout)
        config = ProjectConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = config_dir

    errors = _validate_unique_addresses(config)
    if errors:
        raise ConfigError("\n".join(errors))

    logger.info("Loaded project %s from %s (%d resources)", config.name, path, len(config.resources))
    return config


def _validate_unique_addresses(config: ProjectConfig) -> list[str]:
    """Check that no two declarations share the same type and name, unless both are shared."""
    seen: dict[str, int] = {}
    errors: list[str] = []
    for i, decl in enumerate(config.resources):
        if decl.address in seen and decl.shared and config.resources[seen[decl.address]].shared:
            continue
        if decl.address in seen:
            errors.append(
                f"Duplicate resource '{decl.address}': entries {seen[decl.address]} and {i}"
            )
        else:
            seen[decl.address] = i
    return errors
