"""
Connection orchestrator.

Turns user intents (load, select connection, select project, add
connection) and the realtime connections feed into a consistent
ConnectionStore.

Load lifecycle (UiState):

    IDLE ──load──> LOADING ──batch applied / empty snapshot──> LOADED
                      │                                           │
                      └────────────feed or fetch failure──────> ERROR
    LOADED / ERROR ──load──> LOADING

Selections never run ahead of the data: select_connection waits for LOADED
(starting a load if none is in flight), and select_project additionally
waits until the selected connection's project map contains the project.
Both waits are predicate waits on the store, resolved by dispatch.

Failures inside effects are not raised to callers. They move the store to
ERROR (or set add_error for add_connection) with a display message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Coroutine
from typing import Any

from scopesync.core.config.models import OrchestratorConfig
from scopesync.core.connections.actions import (
    AddConnection,
    AddConnectionFailed,
    AddConnectionSucceeded,
    LoadFailed,
    ModifiedConnection,
    QueryConnections,
    SelectedConnection,
    SelectedProject,
)
from scopesync.core.connections.exceptions import GENERIC_ERROR_MESSAGE, OrchestratorError
from scopesync.core.connections.feed import ChangeFeed
from scopesync.core.connections.models import Connection, CreatedConnection, UiState
from scopesync.core.connections.ports import (
    ConnectionGateway,
    Navigator,
    NullPrompt,
    RecordingNavigator,
    VerificationPrompt,
)
from scopesync.core.connections.reconciler import ChangeFeedReconciler
from scopesync.core.connections.state import (
    ConnectionState,
    select_all,
    select_error,
    select_selected_connection,
    select_selected_project,
    select_ui_state,
)
from scopesync.core.connections.store import ConnectionStore, Predicate
from scopesync.core.teamwork.models import Project, TaskList

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"


class ConnectionOrchestrator:
    """
    State machine and effect runner for the user's connections.

    One instance per event loop. Effects of the same kind follow "latest
    wins": selecting another connection cancels an in-flight projects fetch
    for the previous one.

    Attributes:
        store: The connection store (the only state this class writes)
        gateway: Internal connection API
        feed: Realtime connections feed
        prompt: Account verification prompt shown after add_connection
        navigator: Router used after a successful add_connection
        reconciler: Reconciler of the current feed subscription
    """

    def __init__(
        self,
        store: ConnectionStore,
        gateway: ConnectionGateway,
        feed: ChangeFeed,
        prompt: VerificationPrompt | None = None,
        navigator: Navigator | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.feed = feed
        self.prompt = prompt or NullPrompt()
        self.navigator = navigator or RecordingNavigator()
        self.config = config or OrchestratorConfig()
        self.reconciler = ChangeFeedReconciler(store)

        self._generation = 0
        self._feed_task: asyncio.Task[None] | None = None
        self._effects: dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def connections(self) -> list[Connection]:
        return self.store.select(select_all)

    @property
    def ui_state(self) -> UiState:
        return self.store.select(select_ui_state)

    @property
    def error(self) -> str | None:
        return self.store.select(select_error)

    @property
    def selected_connection(self) -> Connection | None:
        return self.store.select(select_selected_connection)

    @property
    def selected_project(self) -> Project | None:
        return self.store.select(select_selected_project)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def load_connections(self) -> None:
        """
        (Re)subscribe to the connections feed.

        Any earlier subscription is cancelled, and a batch it still delivers
        is dropped. Must be called from a running event loop.
        """
        self._generation += 1
        generation = self._generation

        if self._feed_task is not None and not self._feed_task.done():
            self._feed_task.cancel()

        self.reconciler = ChangeFeedReconciler(self.store)
        self.store.dispatch(QueryConnections())
        logger.debug("load_connections: generation %d", generation)

        self._feed_task = asyncio.get_running_loop().create_task(
            self._consume_feed(generation, self.reconciler)
        )

    async def select_connection(self, connection_id: str) -> bool:
        """
        Select a connection once the store is loaded, then fetch its projects.

        LOADED: selects immediately. LOADING: waits for the load in flight.
        IDLE / ERROR: starts a load, then waits for it.

        Returns:
            True if the selection was dispatched, False if loading failed
            (or the configured readiness timeout elapsed)
        """
        if self.ui_state not in (UiState.LOADED, UiState.LOADING):
            self.load_connections()

        state = await self._wait(lambda s: s.ui_state in (UiState.LOADED, UiState.ERROR))
        if state is None or state.ui_state is not UiState.LOADED:
            logger.debug("select_connection(%s): load did not succeed", connection_id)
            return False

        self.store.dispatch(SelectedConnection(connection_id))
        self._run_effect("projects", self._fetch_projects(connection_id))
        return True

    async def select_project(self, connection_id: str, project_id: str) -> bool:
        """
        Select a project of a connection, then fetch its task lists.

        Selects the connection first if it is not the selected one, or if
        the store is in ERROR so the load and projects fetch run again. Then
        waits until the selected connection has that id and its project map
        contains project_id. The selection is dispatched exactly once.

        Returns:
            True if the selection was dispatched, False if a load or fetch
            failed (or the configured readiness timeout elapsed)
        """
        selected = self.selected_connection
        if selected is None or selected.id != connection_id or self.ui_state is UiState.ERROR:
            if not await self.select_connection(connection_id):
                return False

        def ready(s: ConnectionState) -> bool:
            connection = select_selected_connection(s)
            if connection is not None and connection.id == connection_id:
                if connection.has_project(project_id):
                    return True
            return s.ui_state is UiState.ERROR

        state = await self._wait(ready)
        connection = select_selected_connection(state) if state is not None else None
        if connection is None or connection.id != connection_id or not connection.has_project(
            project_id
        ):
            logger.debug("select_project(%s, %s): not ready", connection_id, project_id)
            return False

        project = (connection.projects or {})[project_id]
        self.store.dispatch(SelectedProject(connection, project))
        self._run_effect("task_lists", self._fetch_task_lists(connection.id, project))
        return True

    async def add_connection(self, token: str) -> CreatedConnection | None:
        """
        Link a new Teamwork account.

        Creates the connection through the internal API, asks the user to
        verify the account, then navigates to the dashboard. On failure
        add_error is set; ui_state is left alone.

        Returns:
            The created connection, or None on failure
        """
        self.store.dispatch(AddConnection(token))
        try:
            created = await self.gateway.add_connection(token)
            await self.prompt.verify_account(
                created.type, created.external_data.company, created.external_data.name
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = OrchestratorError.from_exception(e)
            logger.warning("add_connection failed: %s", error)
            self.store.dispatch(AddConnectionFailed(error.message))
            return None

        self.navigator.go(DASHBOARD_PATH)
        self.store.dispatch(AddConnectionSucceeded(created.id))
        return created

    async def drain(self) -> None:
        """Wait for every in-flight effect (not the feed) to finish."""
        while self._effects:
            tasks = list(self._effects.values())
            await asyncio.gather(*tasks, return_exceptions=True)
            self._effects = {k: t for k, t in self._effects.items() if not t.done()}

    async def close(self) -> None:
        """Cancel the feed subscription and all in-flight effects."""
        self._generation += 1
        tasks = list(self._effects.values())
        if self._feed_task is not None:
            tasks.append(self._feed_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._effects.clear()
        self._feed_task = None

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    async def _consume_feed(self, generation: int, reconciler: ChangeFeedReconciler) -> None:
        batches = self.feed.subscribe()
        try:
            async for batch in batches:
                if generation != self._generation:
                    logger.debug("Dropping batch from stale subscription %d", generation)
                    return
                reconciler.apply_batch(batch)
            if generation == self._generation and not reconciler.has_responded:
                self._fail(
                    "connections feed",
                    OrchestratorError(GENERIC_ERROR_MESSAGE, cause="feed closed"),
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self._generation:
                self._fail("connections feed", e)
        finally:
            await _close_iterator(batches)

    async def _fetch_projects(self, connection_id: str) -> None:
        try:
            projects = await self.gateway.get_projects(connection_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(f"projects of {connection_id}", e)
            return

        current = self.store.state.connections.get(connection_id)
        if current is not None and current.projects:
            # keep task lists already fetched for projects that still exist
            for project_id, project in projects.items():
                known = current.projects.get(project_id)
                if known is not None and project.task_lists is None:
                    projects[project_id] = project.model_copy(
                        update={"task_lists": known.task_lists}
                    )
        self.store.dispatch(ModifiedConnection(connection_id, {"projects": projects}))

    async def _fetch_task_lists(self, connection_id: str, project: Project) -> None:
        try:
            task_lists: dict[str, TaskList] = await self.gateway.get_task_lists(
                connection_id, project.id
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._fail(f"task lists of project {project.id}", e)
            return

        current = self.store.state.connections.get(connection_id)
        if current is None:
            return
        projects = dict(current.projects or {})
        base = projects.get(project.id, project)
        projects[project.id] = base.model_copy(update={"task_lists": task_lists})
        self.store.dispatch(ModifiedConnection(connection_id, {"projects": projects}))

    def _run_effect(self, kind: str, coro: Coroutine[Any, Any, None]) -> None:
        previous = self._effects.get(kind)
        if previous is not None and not previous.done():
            previous.cancel()
        self._effects[kind] = asyncio.get_running_loop().create_task(coro)

    def _fail(self, what: str, error: BaseException) -> None:
        wrapped = OrchestratorError.from_exception(error)
        logger.warning("Loading %s failed: %r", what, error)
        self.store.dispatch(LoadFailed(wrapped.message))

    async def _wait(self, predicate: Predicate) -> ConnectionState | None:
        try:
            return await self.store.wait_for(predicate, timeout=self.config.ready_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out after %ss waiting for connections", self.config.ready_timeout)
            return None


async def _close_iterator(iterator: AsyncIterator[Any]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()
