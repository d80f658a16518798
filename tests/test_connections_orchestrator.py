"""
Tests for the connection orchestrator.

Drives the orchestrator against an in-memory feed and gateway and checks
that selections wait for the data they depend on, failures end in the
ERROR state instead of hanging, and stale work never reaches the store.
"""

import asyncio

import pytest

from scopesync.core.config.models import OrchestratorConfig
from scopesync.core.connections.exceptions import (
    GENERIC_ERROR_MESSAGE,
    ConnectionServiceError,
)
from scopesync.core.connections.models import ChangeEvent, ChangeType, UiState
from scopesync.core.connections.orchestrator import DASHBOARD_PATH, ConnectionOrchestrator
from scopesync.core.connections.ports import RecordingNavigator
from scopesync.core.teamwork.models import Project, TaskList


class ManualFeed:
    """Feed whose subscriptions only deliver what the test pushes."""

    def __init__(self) -> None:
        self.subscriptions: list[asyncio.Queue] = []
        self.closed = 0

    async def subscribe(self):
        queue: asyncio.Queue = asyncio.Queue()
        self.subscriptions.append(queue)
        try:
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed += 1


class ClosedFeed:
    """Feed whose subscriptions end without delivering anything."""

    async def subscribe(self):
        return
        yield


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def orchestrator(store, gateway, feed, prompt, navigator, orchestrator_config):
    """Orchestrator over the in-memory feed and gateway."""
    return ConnectionOrchestrator(
        store, gateway, feed, prompt=prompt, navigator=navigator, config=orchestrator_config
    )


@pytest.fixture
def website():
    return Project(id="p1", name="Website")


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


# ==============================================================================
# Loading
# ==============================================================================


class TestLoadConnections:
    """Test feed subscription and load lifecycle."""

    @pytest.mark.asyncio
    async def test_load_reaches_loaded(self, orchestrator, store, feed, make_doc):
        feed.add("c1", make_doc())

        orchestrator.load_connections()
        assert orchestrator.ui_state is UiState.LOADING

        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)
        assert [c.id for c in orchestrator.connections] == ["c1"]
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_empty_feed_is_loaded(self, orchestrator, store):
        """Test an empty collection still ends loading."""
        orchestrator.load_connections()

        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)
        assert orchestrator.connections == []
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_live_changes_applied(self, orchestrator, store, feed, make_doc):
        """Test changes after the snapshot keep flowing into the store."""
        orchestrator.load_connections()
        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)

        feed.add("c2", make_doc(company="Globex"))
        await store.wait_for(lambda s: "c2" in s.connections, timeout=1)

        feed.remove("c2")
        await store.wait_for(lambda s: "c2" not in s.connections, timeout=1)
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_invalid_change_keeps_subscription(self, orchestrator, store, feed, make_doc):
        """Test a change that cannot be applied does not end live sync."""
        feed.add("c1", make_doc())
        orchestrator.load_connections()
        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)

        feed.publish([ChangeEvent.modified("c1", {"projects": 5})])
        feed.add("c2", make_doc(company="Globex"))
        await store.wait_for(lambda s: "c2" in s.connections, timeout=1)

        assert orchestrator.ui_state is UiState.LOADED
        assert len(orchestrator.reconciler.anomalies) == 1
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_feed_failure_sets_error(self, orchestrator, store, feed):
        """Test a failing subscription ends in ERROR with a generic message."""
        orchestrator.load_connections()
        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)

        feed.fail(RuntimeError("permission denied"))
        await store.wait_for(lambda s: s.ui_state is UiState.ERROR, timeout=1)

        assert orchestrator.error == GENERIC_ERROR_MESSAGE
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_feed_closed_before_first_batch(self, store, gateway):
        """Test a subscription that ends without data moves the store to ERROR."""
        orchestrator = ConnectionOrchestrator(store, gateway, ClosedFeed())

        orchestrator.load_connections()
        await store.wait_for(lambda s: s.ui_state is UiState.ERROR, timeout=1)
        assert orchestrator.error == GENERIC_ERROR_MESSAGE

        assert await orchestrator.select_connection("c1") is False
        assert orchestrator.ui_state is UiState.ERROR
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_stale_subscription_dropped(self, store, gateway, make_doc):
        """Test batches of a replaced subscription never reach the store."""
        manual = ManualFeed()
        orchestrator = ConnectionOrchestrator(store, gateway, manual)

        orchestrator.load_connections()
        await _settle()
        orchestrator.load_connections()
        await _settle()
        assert len(manual.subscriptions) == 2

        old, new = manual.subscriptions
        old.put_nowait([ChangeEvent(type=ChangeType.ADDED, doc_id="old", data=make_doc())])
        new.put_nowait([ChangeEvent(type=ChangeType.ADDED, doc_id="new", data=make_doc())])
        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)
        await _settle()

        assert list(store.state.connections) == ["new"]
        assert manual.closed == 1
        await orchestrator.close()
        assert manual.closed == 2

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, orchestrator, store, feed):
        orchestrator.load_connections()
        await store.wait_for(lambda s: s.ui_state is UiState.LOADED, timeout=1)
        assert feed.subscriber_count == 1

        await orchestrator.close()
        assert feed.subscriber_count == 0


# ==============================================================================
# select_connection
# ==============================================================================


class TestSelectConnection:
    """Test connection selection."""

    @pytest.mark.asyncio
    async def test_from_idle_loads_first(self, orchestrator, store, feed, gateway, make_doc, website):
        """Test selecting before any load starts one and waits for it."""
        feed.add("c1", make_doc())
        gateway.projects["c1"] = {"p1": website}

        assert await orchestrator.select_connection("c1") is True

        assert store.state.ui_state is UiState.LOADED
        assert orchestrator.selected_connection.id == "c1"
        await orchestrator.drain()
        assert orchestrator.selected_connection.projects == {"p1": website}
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_selection_never_dispatched_before_loaded(self, orchestrator, store, feed, make_doc):
        """Test the selection lands after the store is loaded."""
        feed.add("c1", make_doc())
        states_at_selection = []
        store.subscribe(
            lambda action, state: states_at_selection.append(state.ui_state)
            if state.selected_connection_id
            else None
        )

        orchestrator.load_connections()
        assert await orchestrator.select_connection("c1") is True

        assert states_at_selection
        assert all(s is UiState.LOADED for s in states_at_selection)
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_load_error_returns_false(self, store, gateway, orchestrator_config):
        """Test selection gives up when loading fails."""
        manual = ManualFeed()
        orchestrator = ConnectionOrchestrator(store, gateway, manual, config=orchestrator_config)

        selecting = asyncio.ensure_future(orchestrator.select_connection("c1"))
        await _settle()
        manual.subscriptions[0].put_nowait(RuntimeError("offline"))

        assert await selecting is False
        assert orchestrator.ui_state is UiState.ERROR
        assert orchestrator.selected_connection is None
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self, store, gateway):
        """Test a load that never answers is bounded by ready_timeout."""
        orchestrator = ConnectionOrchestrator(
            store, gateway, ManualFeed(), config=OrchestratorConfig(ready_timeout=0.05)
        )

        assert await orchestrator.select_connection("c1") is False
        assert store.pending_waiters == 0
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_projects_failure_sets_error(self, orchestrator, feed, gateway, make_doc):
        """Test a failed projects fetch moves the store to ERROR with its message."""
        feed.add("c1", make_doc())
        gateway.error = ConnectionServiceError("The connection service is unavailable.")

        assert await orchestrator.select_connection("c1") is True
        await orchestrator.drain()

        assert orchestrator.ui_state is UiState.ERROR
        assert orchestrator.error == "The connection service is unavailable."
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_latest_selection_wins(self, orchestrator, feed, gateway, make_doc, website):
        """Test a projects fetch for a replaced selection is cancelled."""
        feed.add("c1", make_doc())
        feed.add("c2", make_doc())
        release = asyncio.Event()
        fetched = []

        async def slow_projects(connection_id):
            fetched.append(connection_id)
            if connection_id == "c1":
                await release.wait()
            return {"p1": website}

        gateway.get_projects = slow_projects

        await orchestrator.select_connection("c1")
        await _settle()
        await orchestrator.select_connection("c2")
        release.set()
        await orchestrator.drain()

        assert fetched == ["c1", "c2"]
        connections = {c.id: c for c in orchestrator.connections}
        assert connections["c1"].projects is None
        assert connections["c2"].projects == {"p1": website}
        assert orchestrator.selected_connection.id == "c2"
        await orchestrator.close()


# ==============================================================================
# select_project
# ==============================================================================


class TestSelectProject:
    """Test project selection."""

    @pytest.mark.asyncio
    async def test_waits_for_projects_then_fetches_task_lists(
        self, orchestrator, feed, gateway, make_doc, website
    ):
        """Test the project is selected once it exists, then its task lists load."""
        feed.add("c1", make_doc())
        gateway.projects["c1"] = {"p1": website}
        gateway.task_lists[("c1", "p1")] = {"t1": TaskList(id="t1", name="Backlog")}

        assert await orchestrator.select_project("c1", "p1") is True

        assert orchestrator.selected_connection.id == "c1"
        assert orchestrator.selected_project.id == "p1"
        await orchestrator.drain()
        project = orchestrator.selected_project
        assert project.task_lists == {"t1": TaskList(id="t1", name="Backlog")}
        assert ("get_task_lists", ("c1", "p1")) in gateway.calls
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_connection_already_selected(self, orchestrator, feed, gateway, make_doc, website):
        """Test no second projects fetch when the connection is already selected."""
        feed.add("c1", make_doc())
        gateway.projects["c1"] = {"p1": website}
        await orchestrator.select_connection("c1")
        await orchestrator.drain()

        assert await orchestrator.select_project("c1", "p1") is True

        assert [c for c in gateway.calls if c[0] == "get_projects"] == [("get_projects", ("c1",))]
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_keeps_task_lists_on_project_refresh(
        self, orchestrator, feed, gateway, make_doc, website
    ):
        """Test reselecting a connection keeps task lists already fetched."""
        feed.add("c1", make_doc())
        feed.add("c2", make_doc())
        gateway.projects["c1"] = {"p1": website}
        gateway.task_lists[("c1", "p1")] = {"t1": TaskList(id="t1")}
        await orchestrator.select_project("c1", "p1")
        await orchestrator.drain()

        await orchestrator.select_connection("c2")
        await orchestrator.select_connection("c1")
        await orchestrator.drain()

        connection = {c.id: c for c in orchestrator.connections}["c1"]
        assert connection.projects["p1"].task_lists == {"t1": TaskList(id="t1")}
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_error_returns_false(self, orchestrator, feed, gateway, make_doc):
        """Test a failed projects fetch resolves the wait with False."""
        feed.add("c1", make_doc())
        gateway.error = ConnectionServiceError("Unable to get projects.")

        assert await orchestrator.select_project("c1", "p1") is False
        assert orchestrator.selected_project is None
        assert orchestrator.error == "Unable to get projects."
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_retry_after_error(self, orchestrator, feed, gateway, make_doc, website):
        """Test selecting again after a failed projects fetch fetches them again."""
        feed.add("c1", make_doc())
        gateway.error = ConnectionServiceError("Unable to get projects.")
        assert await orchestrator.select_project("c1", "p1") is False

        gateway.error = None
        gateway.projects["c1"] = {"p1": website}
        assert await orchestrator.select_project("c1", "p1") is True

        assert orchestrator.ui_state is UiState.LOADED
        assert orchestrator.selected_project.id == "p1"
        assert len([c for c in gateway.calls if c[0] == "get_projects"]) == 2
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_unknown_project_times_out(self, store, gateway, feed, make_doc, website):
        """Test a project that never appears is bounded by ready_timeout."""
        feed.add("c1", make_doc())
        gateway.projects["c1"] = {"p1": website}
        orchestrator = ConnectionOrchestrator(
            store, gateway, feed, config=OrchestratorConfig(ready_timeout=0.1)
        )

        assert await orchestrator.select_project("c1", "missing") is False
        assert orchestrator.selected_project is None
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_unknown_connection_returns_false(self, orchestrator, feed, make_doc):
        feed.add("c1", make_doc())
        orchestrator.config = OrchestratorConfig(ready_timeout=0.1)

        assert await orchestrator.select_project("zz", "p1") is False
        await orchestrator.close()


# ==============================================================================
# add_connection
# ==============================================================================


class TestAddConnection:
    """Test linking a new account."""

    @pytest.mark.asyncio
    async def test_success(self, orchestrator, store, prompt, navigator, token):
        """Test the account is verified, then the user goes to the dashboard."""
        created = await orchestrator.add_connection(token)

        assert created.id == "conn-new"
        assert prompt.shown == [("teamwork", "Acme", "Ada Lovelace")]
        assert navigator.history == [DASHBOARD_PATH]
        assert store.state.adding is False
        assert store.state.add_error is None

    @pytest.mark.asyncio
    async def test_failure_sets_add_error(self, orchestrator, store, prompt, navigator):
        """Test a rejected token sets add_error and does not navigate."""
        store_ui_state = store.state.ui_state

        assert await orchestrator.add_connection("bad-token") is None

        assert store.state.adding is False
        assert store.state.add_error.startswith("Unable to authenticate with Teamwork.")
        assert store.state.ui_state is store_ui_state
        assert prompt.shown == []
        assert navigator.history == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, orchestrator, store, gateway, token):
        gateway.error = RuntimeError("socket closed")

        assert await orchestrator.add_connection(token) is None
        assert store.state.add_error == GENERIC_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_prompt_failure(self, store, gateway, feed, navigator, token):
        """Test a failing verification prompt counts as a failed add."""

        class BrokenPrompt:
            async def verify_account(self, connection_type, company, name):
                raise RuntimeError("dialog closed")

        orchestrator = ConnectionOrchestrator(
            store, gateway, feed, prompt=BrokenPrompt(), navigator=navigator
        )

        assert await orchestrator.add_connection(token) is None
        assert navigator.history == []
