"""
Collaborators the orchestrator talks to but does not implement.

The orchestrator only needs these shapes; the presentation layer, the
internal API client and the router supply the real objects.
"""

from typing import Protocol, runtime_checkable

from scopesync.core.connections.models import CreatedConnection
from scopesync.core.teamwork.models import Project, TaskList


@runtime_checkable
class ConnectionGateway(Protocol):
    """Server-side operations on connections (the internal connection API)."""

    async def add_connection(self, token: str) -> CreatedConnection:
        """Create a connection from a Teamwork token."""
        ...

    async def get_projects(self, connection_id: str) -> dict[str, Project]:
        """Projects of a connection, keyed by project id."""
        ...

    async def get_task_lists(self, connection_id: str, project_id: str) -> dict[str, TaskList]:
        """Task lists of a project, keyed by task-list id."""
        ...


@runtime_checkable
class VerificationPrompt(Protocol):
    """Shows the user which account was just linked and waits for acknowledgement."""

    async def verify_account(self, connection_type: str, company: str, name: str) -> None:
        ...


@runtime_checkable
class Navigator(Protocol):
    """Moves the user to another view."""

    def go(self, path: str) -> None:
        ...


class NullPrompt:
    """Prompt that acknowledges immediately (headless use, tests)."""

    async def verify_account(self, connection_type: str, company: str, name: str) -> None:
        return None


class RecordingNavigator:
    """Navigator that remembers where it was sent instead of going there."""

    def __init__(self) -> None:
        self.history: list[str] = []

    def go(self, path: str) -> None:
        self.history.append(path)

    @property
    def current(self) -> str | None:
        return self.history[-1] if self.history else None
