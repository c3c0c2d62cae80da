"""Configuration loader for TypoGuard."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

# Environment variables and the config path they override (highest priority).
_ENV_KEY_MAP: dict[str, tuple[str, str]] = {
    "ZYTE_API_KEY": ("api_keys", "zyte"),
    "DATABASE_URL": ("database", "url"),
}


# Search for config in common locations
_POSSIBLE_CONFIG_PATHS = [
    Path("/app/config/default.yaml"),  # Docker container path
    Path(__file__).resolve().parent.parent.parent / "config" / "default.yaml",  # Source repo path
    Path.cwd() / "config" / "default.yaml",  # Current working directory
]

DEFAULT_CONFIG_PATH = next(
    (p for p in _POSSIBLE_CONFIG_PATHS if p.exists()),
    _POSSIBLE_CONFIG_PATHS[0],
)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override dict into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(
    config_path: str | Path | None = None,
    default_path: str | Path | None = None,
) -> dict[str, Any]:
    """Load configuration from YAML files.

    Loads the default config, then merges with a local override file
    (config/local.yaml) and finally a user-specified config path.

    Args:
        config_path: Optional path to a config YAML file. If provided,
            it is merged on top of the default config.
        default_path: Override for the default config location.

    Returns:
        Merged configuration dictionary.
    """
    base_path = Path(default_path) if default_path is not None else DEFAULT_CONFIG_PATH
    config: dict[str, Any] = _read_yaml(base_path) if base_path.exists() else {}

    local_path = base_path.parent / "local.yaml"
    if local_path.exists():
        config = _deep_merge(config, _read_yaml(local_path))

    if config_path is not None:
        user_path = Path(config_path)
        if user_path.exists():
            config = _deep_merge(config, _read_yaml(user_path))

    for env_var, (section, key) in _ENV_KEY_MAP.items():
        value = os.getenv(env_var, "")
        if value:
            config.setdefault(section, {})[key] = value

    return config


def get_api_key(config: dict[str, Any], provider_name: str) -> str:
    """Retrieve an API key from config, returning empty string if missing.

    Args:
        config: The loaded configuration dictionary.
        provider_name: Name of the provider (e.g., 'zyte').

    Returns:
        The API key string, or empty string if not configured.
    """
    return config.get("api_keys", {}).get(provider_name, "")


def get_section(config: dict[str, Any], name: str) -> dict[str, Any]:
    """Return a config section as a dict, empty if missing."""
    return config.get(name) or {}
