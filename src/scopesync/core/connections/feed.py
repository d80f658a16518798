"""
Change feed over the connections collection.

A ChangeFeed delivers ordered batches of ChangeEvents. The first batch of a
subscription is the collection's current contents as ADDED events (possibly
empty); later batches carry changes as they happen.

InMemoryChangeFeed is an in-process implementation backed by a dict of
documents, used by the internal API's repository and by tests. Any other
realtime document store can stand in by implementing the protocol.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any, Protocol, runtime_checkable

from scopesync.core.connections.models import ChangeEvent, ChangeType

logger = logging.getLogger(__name__)


@runtime_checkable
class ChangeFeed(Protocol):
    """Protocol for realtime connection feeds."""

    def subscribe(self) -> AsyncIterator[list[ChangeEvent]]:
        """
        Start a subscription.

        Returns:
            Async iterator of batches; the first batch is the initial snapshot
        """
        ...


class InMemoryChangeFeed:
    """
    Document collection that broadcasts its changes to subscribers.

    Every subscriber gets its own queue, so a slow consumer never drops or
    reorders another's events.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._queues: list[asyncio.Queue[list[ChangeEvent] | BaseException]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def documents(self) -> dict[str, dict[str, Any]]:
        return {doc_id: dict(data) for doc_id, data in self._documents.items()}

    def add(self, doc_id: str, data: dict[str, Any]) -> ChangeEvent:
        """Insert or replace a document and broadcast the change."""
        change_type = ChangeType.MODIFIED if doc_id in self._documents else ChangeType.ADDED
        self._documents[doc_id] = dict(data)
        event = ChangeEvent(type=change_type, doc_id=doc_id, data=dict(data))
        self._broadcast([event])
        return event

    def modify(self, doc_id: str, changes: dict[str, Any]) -> ChangeEvent:
        """
        Merge changes into an existing document and broadcast them.

        Raises:
            KeyError: If the document does not exist
        """
        if doc_id not in self._documents:
            raise KeyError(doc_id)
        self._documents[doc_id].update(changes)
        event = ChangeEvent.modified(doc_id, changes)
        self._broadcast([event])
        return event

    def remove(self, doc_id: str) -> ChangeEvent:
        """
        Delete a document and broadcast the removal.

        Raises:
            KeyError: If the document does not exist
        """
        data = self._documents.pop(doc_id)
        event = ChangeEvent(type=ChangeType.REMOVED, doc_id=doc_id, data=data)
        self._broadcast([event])
        return event

    def publish(self, events: Sequence[ChangeEvent]) -> None:
        """
        Broadcast a raw batch, applying it to the stored documents first.

        Unlike modify/remove this does not validate ids, so a batch can
        describe changes the collection never saw.
        """
        for event in events:
            if event.type is ChangeType.ADDED:
                self._documents[event.doc_id] = dict(event.data)
            elif event.type is ChangeType.MODIFIED and event.doc_id in self._documents:
                self._documents[event.doc_id].update(event.data)
            elif event.type is ChangeType.REMOVED:
                self._documents.pop(event.doc_id, None)
        self._broadcast(list(events))

    def fail(self, error: BaseException) -> None:
        """Terminate every live subscription with `error`."""
        for queue in list(self._queues):
            queue.put_nowait(error)

    def _broadcast(self, batch: list[ChangeEvent]) -> None:
        for queue in list(self._queues):
            queue.put_nowait(batch)

    async def subscribe(self) -> AsyncIterator[list[ChangeEvent]]:
        queue: asyncio.Queue[list[ChangeEvent] | BaseException] = asyncio.Queue()
        # snapshot and registration happen together, so no change is missed
        initial = [
            ChangeEvent(type=ChangeType.ADDED, doc_id=doc_id, data=dict(data))
            for doc_id, data in self._documents.items()
        ]
        self._queues.append(queue)
        logger.debug("feed subscriber added (%d live)", len(self._queues))
        try:
            yield initial
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self._queues.remove(queue)
            logger.debug("feed subscriber removed (%d live)", len(self._queues))
