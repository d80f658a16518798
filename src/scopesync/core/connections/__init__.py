"""
Connections - linked Teamwork accounts and their cached projects.

The ConnectionStore holds the state, the ChangeFeedReconciler folds the
realtime feed into it, and the ConnectionOrchestrator sequences user
selections against data availability.
"""

from scopesync.core.connections.exceptions import (
    ConnectionServiceError,
    ConnectionsError,
    OrchestratorError,
    StoreReconciliationAnomaly,
)
from scopesync.core.connections.feed import ChangeFeed, InMemoryChangeFeed
from scopesync.core.connections.models import (
    ChangeEvent,
    ChangeType,
    Connection,
    CreatedConnection,
    UiState,
)
from scopesync.core.connections.orchestrator import ConnectionOrchestrator
from scopesync.core.connections.reconciler import ChangeFeedReconciler
from scopesync.core.connections.service import HttpConnectionService
from scopesync.core.connections.state import ConnectionState
from scopesync.core.connections.store import ConnectionStore

__all__ = [
    # Models
    "ChangeEvent",
    "ChangeType",
    "Connection",
    "CreatedConnection",
    "UiState",
    "ConnectionState",
    # Store and feed
    "ConnectionStore",
    "ChangeFeed",
    "InMemoryChangeFeed",
    "ChangeFeedReconciler",
    # Orchestration
    "ConnectionOrchestrator",
    "HttpConnectionService",
    # Errors
    "ConnectionsError",
    "ConnectionServiceError",
    "OrchestratorError",
    "StoreReconciliationAnomaly",
]
