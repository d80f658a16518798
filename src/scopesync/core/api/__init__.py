"""
Internal connection API.

FastAPI app exposing connection creation and the Teamwork projects, task
lists and tasks behind each connection.

Run standalone with:
    scopesync serve
"""

from scopesync.core.api.app import create_app
from scopesync.core.api.repository import ConnectionNotFoundError, ConnectionRepository

__all__ = ["create_app", "ConnectionRepository", "ConnectionNotFoundError"]
