"""
Connection state, reducer and selectors.

ConnectionState is an immutable snapshot. The only way to get a new one is
reduce(state, action); the store applies it and bumps the version. Selectors
are plain functions over a snapshot and never block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from scopesync.core.connections.actions import (
    Action,
    AddConnection,
    AddConnectionFailed,
    AddConnectionSucceeded,
    AddedConnection,
    ConnectionsLoaded,
    LoadFailed,
    ModifiedConnection,
    NoConnections,
    QueryConnections,
    RemovedConnection,
    SelectedConnection,
    SelectedProject,
)
from scopesync.core.connections.models import Connection, UiState
from scopesync.core.teamwork.models import Project

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionState:
    """
    Snapshot of everything known about the user's connections.

    Attributes:
        connections: Connections by id
        ui_state: Load lifecycle of the connections list
        error: Message of the last failed load or fetch
        adding: True while an add-connection request is in flight
        add_error: Message of the last failed add-connection request
        selected_connection_id: Currently selected connection, if any
        selected_project_id: Currently selected project, if any
        version: Incremented on every dispatch
    """

    connections: dict[str, Connection] = field(default_factory=dict)
    ui_state: UiState = UiState.IDLE
    error: str | None = None
    adding: bool = False
    add_error: str | None = None
    selected_connection_id: str | None = None
    selected_project_id: str | None = None
    version: int = 0


def reduce(state: ConnectionState, action: Action) -> ConnectionState:
    """Return the state that results from applying `action` to `state`."""
    if isinstance(action, QueryConnections):
        return replace(state, ui_state=UiState.LOADING, error=None)

    if isinstance(action, NoConnections):
        return _without_selection(replace(state, connections={}, ui_state=UiState.LOADED, error=None))

    if isinstance(action, AddedConnection):
        connections = dict(state.connections)
        connections[action.connection.id] = action.connection
        return replace(state, connections=connections)

    if isinstance(action, ModifiedConnection):
        existing = state.connections.get(action.connection_id)
        if existing is None:
            logger.debug("Ignoring update for unknown connection %s", action.connection_id)
            return state
        connections = dict(state.connections)
        connections[existing.id] = existing.merged(action.changes)
        return replace(state, connections=connections)

    if isinstance(action, RemovedConnection):
        if action.connection_id not in state.connections:
            return state
        connections = {k: v for k, v in state.connections.items() if k != action.connection_id}
        new_state = replace(state, connections=connections)
        if state.selected_connection_id == action.connection_id:
            new_state = _without_selection(new_state)
        return new_state

    if isinstance(action, ConnectionsLoaded):
        return replace(state, ui_state=UiState.LOADED, error=None)

    if isinstance(action, LoadFailed):
        return replace(state, ui_state=UiState.ERROR, error=action.message)

    if isinstance(action, SelectedConnection):
        if state.selected_connection_id == action.connection_id:
            return state
        return replace(
            state, selected_connection_id=action.connection_id, selected_project_id=None
        )

    if isinstance(action, SelectedProject):
        return replace(
            state,
            selected_connection_id=action.connection.id,
            selected_project_id=action.project.id,
        )

    if isinstance(action, AddConnection):
        return replace(state, adding=True, add_error=None)

    if isinstance(action, AddConnectionSucceeded):
        return replace(state, adding=False, add_error=None)

    if isinstance(action, AddConnectionFailed):
        return replace(state, adding=False, add_error=action.message)

    raise TypeError(f"Unknown action: {action!r}")


def _without_selection(state: ConnectionState) -> ConnectionState:
    return replace(state, selected_connection_id=None, selected_project_id=None)


# ----------------------------------------------------------------------
# Selectors
# ----------------------------------------------------------------------


def select_all(state: ConnectionState) -> list[Connection]:
    return list(state.connections.values())


def select_ui_state(state: ConnectionState) -> UiState:
    return state.ui_state


def select_error(state: ConnectionState) -> str | None:
    return state.error


def select_selected_connection(state: ConnectionState) -> Connection | None:
    if state.selected_connection_id is None:
        return None
    return state.connections.get(state.selected_connection_id)


def select_selected_project(state: ConnectionState) -> Project | None:
    connection = select_selected_connection(state)
    if connection is None or not connection.projects or state.selected_project_id is None:
        return None
    return connection.projects.get(state.selected_project_id)
