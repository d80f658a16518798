"""
Teamwork token lookup.

Commands that talk to Teamwork need an API token. It comes from --token
when given, otherwise from TEAMWORK_API_TOKEN, which may be exported in the
shell or kept in a .env file:

    ~/.config/scopesync/.env  <  ./.env  <  ./.env.local  <  shell

Later files override earlier ones; nothing read from disk replaces a
variable the shell already exported.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

TOKEN_ENV_VAR = "TEAMWORK_API_TOKEN"


class MissingTokenError(Exception):
    """No token was passed and none is configured."""

    def __init__(self) -> None:
        super().__init__(
            f"No Teamwork API token. Pass --token or set {TOKEN_ENV_VAR} "
            "(in the shell or a .env file)."
        )


def env_files(project_dir: Path | None = None) -> list[Path]:
    """The .env files that may hold the token, lowest precedence first."""
    project_dir = project_dir or Path.cwd()
    return [
        get_xdg_config_home() / "scopesync" / ".env",
        project_dir / ".env",
        project_dir / ".env.local",
    ]


def load_env_files(paths: Iterable[Path] | None = None) -> dict[str, str]:
    """
    Export variables from .env files that the shell has not set.

    Args:
        paths: Files to read, lowest precedence first (defaults to env_files())

    Returns:
        The variables that were exported
    """
    collected: dict[str, str] = {}
    for path in env_files() if paths is None else paths:
        path = Path(path)
        if path.is_file():
            collected.update({k: v for k, v in dotenv_values(path).items() if k and v is not None})

    exported = {k: v for k, v in collected.items() if k not in os.environ}
    os.environ.update(exported)
    return exported


def get_token() -> str | None:
    """Return the configured token, or None if unset or blank."""
    return os.environ.get(TOKEN_ENV_VAR, "").strip() or None


def require_token(token: str | None = None) -> str:
    """
    Pick the token to use: an explicit one first, then the configured one.

    Raises:
        MissingTokenError: If neither is set
    """
    resolved = (token or "").strip() or get_token()
    if resolved is None:
        raise MissingTokenError()
    return resolved
