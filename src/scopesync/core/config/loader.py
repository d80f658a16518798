"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import ScopeSyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: ScopeSyncConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/scopesync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "scopesync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .scopesync.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".scopesync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set_nested(config: dict[str, Any], section: str, key: str, value: Any) -> None:
    config.setdefault(section, {})
    config[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        SCOPESYNC_TEAMWORK_TIMEOUT - overrides teamwork.timeout
        SCOPESYNC_TEAMWORK_MAX_RETRIES - overrides teamwork.max_retries
        SCOPESYNC_API_BASE_URL - overrides api.base_url
        SCOPESYNC_READY_TIMEOUT - overrides orchestrator.ready_timeout

    Invalid numeric values are logged and ignored.
    """
    result = config_dict.copy()

    if timeout_str := os.environ.get("SCOPESYNC_TEAMWORK_TIMEOUT"):
        try:
            _set_nested(result, "teamwork", "timeout", float(timeout_str))
        except ValueError:
            logger.warning("Invalid SCOPESYNC_TEAMWORK_TIMEOUT value '%s', ignoring", timeout_str)

    if retries_str := os.environ.get("SCOPESYNC_TEAMWORK_MAX_RETRIES"):
        try:
            retries = int(retries_str)
            if retries < 0:
                logger.warning(
                    "SCOPESYNC_TEAMWORK_MAX_RETRIES must be >= 0, got %d, ignoring", retries
                )
            else:
                _set_nested(result, "teamwork", "max_retries", retries)
        except ValueError:
            logger.warning(
                "Invalid SCOPESYNC_TEAMWORK_MAX_RETRIES value '%s', ignoring", retries_str
            )

    if base_url := os.environ.get("SCOPESYNC_API_BASE_URL"):
        _set_nested(result, "api", "base_url", base_url)

    if ready_str := os.environ.get("SCOPESYNC_READY_TIMEOUT"):
        try:
            _set_nested(result, "orchestrator", "ready_timeout", float(ready_str))
        except ValueError:
            logger.warning("Invalid SCOPESYNC_READY_TIMEOUT value '%s', ignoring", ready_str)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "teamwork": {
            "auth_url": "https://authenticate.teamwork.com/authenticate.json",
            "timeout": 30.0,
            "max_retries": 3,
        },
        "api": {"base_url": "http://127.0.0.1:8000/api"},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> ScopeSyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (SCOPESYNC_*)
        2. Project config (.scopesync.json)
        3. User config (~/.config/scopesync/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .scopesync.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated ScopeSyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = ScopeSyncConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
