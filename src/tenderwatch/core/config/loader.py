"""
Configuration loader for YAML files.

Loads and validates configuration from YAML files into Pydantic models.
Source entries are merged over the built-in definitions by ``id`` so a
deployment only has to spell out what it changes.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig, SourceConfig
from .sources import DEFAULT_SOURCES

CONFIG_ENV_VAR = "TENDERWATCH_CONFIG"
DEFAULT_APP_CONFIG_PATH = Path("configs/app.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dictionary.

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}", path=path)
    return data


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in string values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, str):
        return _ENV_PATTERN.sub(
            lambda match: os.environ.get(match.group(1), match.group(2) or ""),
            data,
        )
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            # A different strategy kind replaces the strategy wholesale
            if key == "strategy" and value.get("kind", merged[key].get("kind")) != merged[key].get("kind"):
                merged[key] = value
            else:
                merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_source_overrides(
    overrides: list[dict[str, Any]],
    base: list[SourceConfig] | None = None,
) -> list[dict[str, Any]]:
    """Merge raw source mappings over existing source definitions.

    Args:
        overrides: Raw source dictionaries (each must carry an ``id``)
        base: Existing sources (default: the built-in sources)

    Returns:
        List of raw source dictionaries ready for validation
    """
    if base is None:
        base = DEFAULT_SOURCES

    merged: dict[str, dict[str, Any]] = {
        source.id: source.model_dump(mode="json") for source in base
    }

    for override in overrides:
        if not isinstance(override, dict) or "id" not in override:
            raise ConfigError("Every source entry needs an 'id'")
        source_id = override["id"]
        if source_id in merged:
            merged[source_id] = _deep_merge(merged[source_id], override)
        else:
            merged[source_id] = override

    return list(merged.values())


def load_source_files(source_dir: Path | str, expand_env: bool = True) -> list[dict[str, Any]]:
    """Load raw source mappings from every *.yaml / *.yml file in a directory."""
    source_dir = Path(source_dir)
    if not source_dir.exists():
        return []

    entries: list[dict[str, Any]] = []
    for path in sorted([*source_dir.glob("*.yaml"), *source_dir.glob("*.yml")]):
        if path.name.startswith("_"):
            continue
        data = _load_yaml_file(path)
        if expand_env:
            data = _expand_env_vars(data)
        if "id" not in data:
            data["id"] = path.stem
        entries.append(data)
    return entries


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load application configuration from YAML file.

    Args:
        path: Path to app.yaml (default: $TENDERWATCH_CONFIG or configs/app.yaml)
        expand_env: Whether to expand environment variables

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_APP_CONFIG_PATH
    else:
        path = Path(path)

    data: dict[str, Any] = {}
    if path.exists():
        data = _load_yaml_file(path)
        if expand_env:
            data = _expand_env_vars(data)

    overrides = list(data.pop("sources", None) or [])
    sources_dir = data.get("sources_dir")
    if sources_dir:
        overrides.extend(load_source_files(sources_dir, expand_env=expand_env))

    try:
        data["sources"] = merge_source_overrides(overrides)
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details=str(e),
        ) from e


def validate_source_config(data: dict[str, Any]) -> list[str]:
    """Validate a raw source mapping without loading it.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors: list[str] = []
    try:
        SourceConfig.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
    return errors
