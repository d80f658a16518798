"""
Actions dispatched to the ConnectionStore.

Each action is an immutable record of something that happened; the reducer
in scopesync.core.connections.state decides what it does to the state.
"""

from dataclasses import dataclass, field
from typing import Any

from scopesync.core.connections.models import Connection
from scopesync.core.teamwork.models import Project


@dataclass(frozen=True)
class QueryConnections:
    """A (re)load of the connections feed started."""


@dataclass(frozen=True)
class NoConnections:
    """The feed answered with an empty initial batch."""


@dataclass(frozen=True)
class AddedConnection:
    connection: Connection


@dataclass(frozen=True)
class ModifiedConnection:
    connection_id: str
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemovedConnection:
    connection_id: str


@dataclass(frozen=True)
class ConnectionsLoaded:
    """A feed batch has been fully applied."""


@dataclass(frozen=True)
class LoadFailed:
    message: str


@dataclass(frozen=True)
class SelectedConnection:
    connection_id: str


@dataclass(frozen=True)
class SelectedProject:
    connection: Connection
    project: Project


@dataclass(frozen=True)
class AddConnection:
    token: str = field(repr=False)


@dataclass(frozen=True)
class AddConnectionSucceeded:
    connection_id: str


@dataclass(frozen=True)
class AddConnectionFailed:
    message: str


Action = (
    QueryConnections
    | NoConnections
    | AddedConnection
    | ModifiedConnection
    | RemovedConnection
    | ConnectionsLoaded
    | LoadFailed
    | SelectedConnection
    | SelectedProject
    | AddConnection
    | AddConnectionSucceeded
    | AddConnectionFailed
)
