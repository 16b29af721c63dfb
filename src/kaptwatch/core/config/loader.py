"""
YAML configuration loading.

``configs/app.yaml`` (or the file named by ``$KAPTWATCH_CONFIG``) is read,
``${VAR}`` / ``${VAR:-default}`` references are expanded from the
environment, and the result is validated into ``AppConfig``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from kaptwatch.core.errors import ConfigError

from .models import AppConfig


DEFAULT_CONFIG_PATH = Path("configs/app.yaml")
CONFIG_ENV_VAR = "KAPTWATCH_CONFIG"

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; an empty file is an empty mapping.

    Raises:
        ConfigError: If the file is missing, unreadable, malformed or
            not a mapping at the top level
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}", path=path)
    return data


def _expand_env_vars(value: Any) -> Any:
    """Expand environment references in every string inside ``value``."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: os.environ.get(m.group(1), m.group(2) or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _resolve_path(path: Path | str | None) -> Path:
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load the application configuration.

    Args:
        path: Config file (default: ``$KAPTWATCH_CONFIG`` or configs/app.yaml)
        expand_env: Whether to expand ``${VAR}`` references

    Returns:
        Validated AppConfig; all defaults when the file does not exist

    Raises:
        ConfigError: If the file exists but is invalid
    """
    path = _resolve_path(path)
    if not path.exists():
        return AppConfig()

    data = _load_yaml_file(path)
    if expand_env:
        data = _expand_env_vars(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details=str(e),
        ) from e


def validate_config_file(path: Path | str) -> list[str]:
    """Check a config file and describe every problem found.

    Returns:
        ``"<dotted.location>: <message>"`` strings; empty when valid
    """
    try:
        data = _load_yaml_file(Path(path))
    except ConfigError as e:
        return [str(e)]

    try:
        AppConfig.model_validate(_expand_env_vars(data))
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
    return []
