"""
Configuration data models for scopesync.

These models define the structure of .scopesync.json and
~/.config/scopesync/config.json files, with validation and type safety
via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TeamworkConfig(BaseModel):
    """
    Settings for talking to the Teamwork API.

    The auth URL is account-independent; every other endpoint is resolved
    against the base URL returned by the authentication call.
    """
    auth_url: str = Field(
        default="https://authenticate.teamwork.com/authenticate.json",
        description="Authentication endpoint used to validate tokens"
    )
    password_placeholder: str = Field(
        default="X",
        min_length=1,
        description="Literal password sent alongside the token in Basic auth"
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request timeout in seconds"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries for transient failures (timeouts, 5xx)"
    )
    retry_base_delay: float = Field(
        default=1.0,
        gt=0.0,
        description="Initial backoff delay in seconds"
    )


class ApiConfig(BaseModel):
    """
    Internal connection API settings.

    base_url is where HttpConnectionService.from_config (and so
    `scopesync connect`) reaches the API; host and port are used by
    `scopesync serve`.
    """
    base_url: str = Field(
        default="http://127.0.0.1:8000/api",
        description="Base URL of the internal connection API"
    )
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base_url so paths can be appended with a single slash."""
        return v.rstrip("/")


class OrchestratorConfig(BaseModel):
    """Connection orchestrator behaviour."""
    ready_timeout: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Give up waiting for a readiness predicate after this many seconds"
    )


class ScopeSyncConfig(BaseModel):
    """
    Root configuration object.

    Produced by scopesync.core.config.loader.load_config() after merging
    defaults, user config, project config and environment overrides.
    """
    teamwork: TeamworkConfig = Field(default_factory=TeamworkConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)

    model_config = ConfigDict(
        extra="ignore",
    )
