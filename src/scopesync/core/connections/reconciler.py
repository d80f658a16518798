"""
Fold change-feed batches into the connection store.

Events are applied one at a time in the order the feed delivered them.
Each event becomes one store action, so every event is atomic with respect
to the store, but a batch as a whole is not transactional.
"""

import logging
from collections.abc import Sequence

from pydantic import ValidationError

from scopesync.core.connections.actions import (
    Action,
    AddedConnection,
    ConnectionsLoaded,
    ModifiedConnection,
    NoConnections,
    RemovedConnection,
)
from scopesync.core.connections.exceptions import StoreReconciliationAnomaly
from scopesync.core.connections.models import ChangeEvent, ChangeType, Connection
from scopesync.core.connections.store import ConnectionStore

logger = logging.getLogger(__name__)


class ChangeFeedReconciler:
    """
    Applies ChangeEvents for one feed subscription.

    The first batch of a subscription is treated as the collection's full
    contents: connections the store holds but the batch does not mention
    are removed, and an empty first batch produces a single NoConnections.
    Create a new reconciler (or call reset()) for each subscription.

    Attributes:
        store: Store receiving the resulting actions
        anomalies: Events that referenced unknown connections or carried
            unusable data, in arrival order
    """

    def __init__(self, store: ConnectionStore) -> None:
        self.store = store
        self.anomalies: list[StoreReconciliationAnomaly] = []
        self._responded = False

    @property
    def has_responded(self) -> bool:
        """True once the subscription delivered its first batch (even an empty one)."""
        return self._responded

    def reset(self) -> None:
        """Start a new subscription lifecycle."""
        self._responded = False

    def apply_batch(self, batch: Sequence[ChangeEvent]) -> None:
        """Apply a batch in order, then mark the store as loaded."""
        initial = not self._responded
        self._responded = True

        if initial and not batch:
            self.store.dispatch(NoConnections())
            return

        if initial:
            self._drop_missing(batch)

        for event in batch:
            self.apply_event(event)

        self.store.dispatch(ConnectionsLoaded())

    def apply_event(self, event: ChangeEvent) -> None:
        """Apply a single event; unknown ids and invalid data are recorded as anomalies."""
        action = self._to_action(event)
        if action is not None:
            self.store.dispatch(action)

    def _to_action(self, event: ChangeEvent) -> Action | None:
        known = event.doc_id in self.store.state.connections

        if event.type is ChangeType.ADDED:
            try:
                connection = Connection.from_document(event.doc_id, event.data)
            except ValidationError as e:
                self._record(event, detail=str(e))
                return None
            return AddedConnection(connection)

        if not known:
            self._record(event)
            return None

        if event.type is ChangeType.MODIFIED:
            try:
                self.store.state.connections[event.doc_id].merged(event.data)
            except ValidationError as e:
                self._record(event, detail=str(e))
                return None
            return ModifiedConnection(event.doc_id, dict(event.data))
        return RemovedConnection(event.doc_id)

    def _drop_missing(self, batch: Sequence[ChangeEvent]) -> None:
        present = {e.doc_id for e in batch if e.type is ChangeType.ADDED}
        for connection_id in list(self.store.state.connections):
            if connection_id not in present:
                self.store.dispatch(RemovedConnection(connection_id))

    def _record(self, event: ChangeEvent, detail: str | None = None) -> None:
        anomaly = StoreReconciliationAnomaly(event.doc_id, event.type.value)
        self.anomalies.append(anomaly)
        if detail:
            logger.warning("Reconciliation anomaly: %s (%s)", anomaly, detail)
        else:
            logger.warning("Reconciliation anomaly: %s", anomaly)
