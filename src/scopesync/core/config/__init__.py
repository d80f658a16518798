"""
Configuration models and loading.

This module provides Pydantic models for scopesync configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import (
    TOKEN_ENV_VAR,
    MissingTokenError,
    env_files,
    get_token,
    load_env_files,
    require_token,
)
from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import ApiConfig, OrchestratorConfig, ScopeSyncConfig, TeamworkConfig

__all__ = [
    # Models
    "ApiConfig",
    "OrchestratorConfig",
    "ScopeSyncConfig",
    "TeamworkConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    # Environment
    "TOKEN_ENV_VAR",
    "MissingTokenError",
    "env_files",
    "get_token",
    "load_env_files",
    "require_token",
]
