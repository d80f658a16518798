"""
In-memory connection store.

Holds the current ConnectionState, applies actions through the reducer, and
lets callers suspend until a condition over the state becomes true.

Waiting is notification-based: every dispatch re-evaluates the pending
predicates and resolves the ones that now hold. There is no polling.

Example:
    >>> store = ConnectionStore()
    >>> loaded = await store.wait_for(lambda s: s.ui_state is UiState.LOADED)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import TypeVar

from scopesync.core.connections.actions import Action
from scopesync.core.connections.state import ConnectionState, reduce

logger = logging.getLogger(__name__)

T = TypeVar("T")

Predicate = Callable[[ConnectionState], bool]
Listener = Callable[[Action, ConnectionState], None]


class ConnectionStore:
    """
    Single owner of the connection state.

    dispatch() is synchronous, so within one event loop every action is
    applied atomically and readers always see a fully-applied snapshot.
    """

    def __init__(self, initial: ConnectionState | None = None) -> None:
        self._state = initial or ConnectionState()
        self._waiters: list[tuple[Predicate, asyncio.Future[ConnectionState]]] = []
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    def select(self, selector: Callable[[ConnectionState], T]) -> T:
        """Read a derived value from the current snapshot."""
        return selector(self._state)

    def dispatch(self, action: Action) -> ConnectionState:
        """
        Apply an action and wake any waiter whose predicate now holds.

        Returns:
            The new snapshot
        """
        previous = self._state
        self._state = replace(reduce(previous, action), version=previous.version + 1)
        logger.debug("dispatch %s -> v%d (%s)", type(action).__name__, self._state.version,
                     self._state.ui_state.value)

        for listener in list(self._listeners):
            try:
                listener(action, self._state)
            except Exception:
                logger.exception("Store listener failed on %s", type(action).__name__)

        self._wake_waiters()
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Observe every dispatched action.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _wake_waiters(self) -> None:
        pending = []
        for predicate, future in self._waiters:
            if future.done():
                continue
            if predicate(self._state):
                future.set_result(self._state)
            else:
                pending.append((predicate, future))
        self._waiters = pending

    async def wait_for(
        self, predicate: Predicate, timeout: float | None = None
    ) -> ConnectionState:
        """
        Suspend until `predicate` holds, then return that snapshot.

        Returns immediately if the predicate already holds. The predicate is
        re-checked on resumption, so the returned snapshot is the current one.

        Raises:
            TimeoutError: If timeout elapses first
        """
        async def _wait() -> ConnectionState:
            while not predicate(self._state):
                future: asyncio.Future[ConnectionState] = (
                    asyncio.get_running_loop().create_future()
                )
                self._waiters.append((predicate, future))
                try:
                    await future
                finally:
                    if not future.done():
                        future.cancel()
                    self._waiters = [w for w in self._waiters if w[1] is not future]
            return self._state

        if timeout is None:
            return await _wait()
        return await asyncio.wait_for(_wait(), timeout)

    @property
    def pending_waiters(self) -> int:
        return sum(1 for _, future in self._waiters if not future.done())
