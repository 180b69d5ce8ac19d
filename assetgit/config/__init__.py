"""Configuration management for AssetGit."""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from assetgit.errors import ConfigurationError, InvalidConfigError

from .settings import Settings

# Singleton instance
_settings: Optional[Settings] = None

CONFIG_DIR = Path.home() / ".assetgit"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} references; empty results become None."""
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if isinstance(value, str):
        expanded = _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return expanded or None
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into a copy of ``base``, recursing into sections."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _load_yaml_file(path: Path) -> dict:
    """Read a YAML mapping; a missing or empty file reads as ``{}``.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}", code="CONFIG_PARSE_ERROR") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"{path} must contain a mapping", code="CONFIG_PARSE_ERROR")
    return content


def _drop_none(config: dict) -> dict:
    """Remove unset values so model defaults apply."""
    result = {}
    for key, value in config.items():
        if isinstance(value, dict):
            result[key] = _drop_none(value)
        elif value is not None:
            result[key] = value
    return result


def create_default_config() -> None:
    """Seed ``~/.assetgit/config.yaml`` from the packaged defaults."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    if not CONFIG_FILE.exists():
        CONFIG_FILE.write_text(DEFAULTS_FILE.read_text(encoding="utf-8"), encoding="utf-8")


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Config file to use instead of ``~/.assetgit/config.yaml``
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a config file cannot be read.
        InvalidConfigError: If a value fails validation.
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    layered = _deep_merge(
        _load_yaml_file(DEFAULTS_FILE),
        _load_yaml_file(config_path or CONFIG_FILE),
    )

    try:
        # Environment variables are read here too and win over the files
        _settings = Settings(**_drop_none(_expand_env_vars(layered)))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "settings"
        raise InvalidConfigError(field, first.get("input"), first["msg"]) from e

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None


def save_git_executable(path: str, config_path: Optional[Path] = None) -> None:
    """Persist the git executable path to the user config file.

    Other keys in the file are kept; comments are not.
    """
    target = config_path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)

    config = _load_yaml_file(target)
    git_section = config.get("git") or {}
    git_section["executable"] = path
    config["git"] = git_section

    with open(target, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    if _settings is not None:
        _settings.git.executable = path


__all__ = [
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "save_git_executable",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
]
