"""
Pytest configuration and shared fixtures.

Provides an in-process fake of the Teamwork API (served through
httpx.MockTransport), a Teamwork client wired to it, and small fakes for
the collaborators of the connection orchestrator.
"""

import json
import re
from typing import Any

import httpx
import pytest

from scopesync.core.config import clear_cache
from scopesync.core.config.models import OrchestratorConfig, TeamworkConfig
from scopesync.core.connections.exceptions import ConnectionServiceError
from scopesync.core.connections.feed import InMemoryChangeFeed
from scopesync.core.connections.models import CreatedConnection
from scopesync.core.connections.store import ConnectionStore
from scopesync.core.teamwork.client import TeamworkClient, encode_credentials
from scopesync.core.teamwork.models import AccountInfo, Project, TaskList

TOKEN = "tkn_valid"
BASE_URL = "https://acme.teamwork.com/"

# ==============================================================================
# Fake Teamwork API
# ==============================================================================


class FakeTeamwork:
    """
    Minimal Teamwork API served from memory.

    Only requests carrying the Basic credentials of `token` are accepted.
    Paged resources are lists of pages; the page number comes from the
    `page` query parameter and is echoed in x-page / x-pages.

    Attributes:
        requests: Every request received, in order
        failures: Path -> status code to answer with instead of the resource
    """

    def __init__(self, token: str = TOKEN, base_url: str = BASE_URL) -> None:
        self.token = token
        self.base_url = base_url
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, int] = {}
        self.account: dict[str, Any] = {
            "id": 545,
            "URL": base_url,
            "userId": 77,
            "firstname": "Ada",
            "lastname": "Lovelace",
            "companyname": "Acme",
            "companyid": 12,
        }
        self.projects: list[dict[str, Any]] = [
            {"id": 1, "name": "Website", "description": "Relaunch", "created-on": "2024-01-02"},
            {"id": 2, "name": "Mobile", "description": "", "created-on": "2024-03-04"},
        ]
        self.task_list_pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.task_pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.tasks: dict[str, dict[str, Any]] = {}
        self.updates: list[tuple[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            return httpx.Response(self.failures[path], json={"MESSAGE": "failure"})
        if request.headers.get("Authorization") != encode_credentials(self.token):
            return httpx.Response(401, json={"MESSAGE": "Unauthorized"})

        if request.url.host == "authenticate.teamwork.com":
            return httpx.Response(200, json={"account": self.account, "STATUS": "OK"})
        if path == "/projects.json":
            return httpx.Response(200, json={"projects": self.projects, "STATUS": "OK"})

        page = int(request.url.params.get("page", "1"))
        if match := re.fullmatch(r"/projects/(\w+)/tasklists\.json", path):
            return self._page(self.task_list_pages.get(match.group(1), [[]]), page, "tasklists")
        if match := re.fullmatch(r"/tasklists/(\w+)/tasks\.json", path):
            return self._page(self.task_pages.get(match.group(1), [[]]), page, "todo-items")
        if match := re.fullmatch(r"/tasks/(\w+)\.json", path):
            task_id = match.group(1)
            if request.method == "PUT":
                body = json.loads(request.content)
                self.updates.append((task_id, body))
                if task_id in self.tasks:
                    self.tasks[task_id].update(body["todo-item"])
                return httpx.Response(200, json={"STATUS": "OK"})
            if task_id not in self.tasks:
                return httpx.Response(404, json={"MESSAGE": "Not found"})
            return httpx.Response(200, json={"todo-item": self.tasks[task_id]})

        return httpx.Response(404, json={"MESSAGE": "Not found"})

    def _page(self, pages: list[list[dict[str, Any]]], page: int, key: str) -> httpx.Response:
        items = pages[page - 1] if 0 < page <= len(pages) else []
        return httpx.Response(
            200,
            json={key: items, "STATUS": "OK"},
            headers={"x-page": str(page), "x-pages": str(len(pages))},
        )

    def pages_requested(self, path: str) -> list[int]:
        return [int(r.url.params.get("page", "1")) for r in self.requests if r.url.path == path]


def task_item(task_id: int, parent: int | str = "", minutes: int | str | None = None) -> dict[str, Any]:
    """A Teamwork todo-item as returned by the tasks endpoints."""
    item: dict[str, Any] = {
        "id": task_id,
        "content": f"Task {task_id}",
        "description": "",
        "parentTaskId": str(parent),
    }
    if minutes is not None:
        item["estimated-minutes"] = minutes
    return item


@pytest.fixture
def teamwork():
    """Provide a fresh fake Teamwork API."""
    return FakeTeamwork()


@pytest.fixture
def teamwork_config():
    """Teamwork settings without retries, so failures surface immediately."""
    return TeamworkConfig(max_retries=0, retry_base_delay=0.01)


@pytest.fixture
def teamwork_http(teamwork):
    """An httpx.AsyncClient whose requests are answered by the fake API."""
    return httpx.AsyncClient(transport=httpx.MockTransport(teamwork.handler))


@pytest.fixture
def client(teamwork_config, teamwork_http):
    """A TeamworkClient talking to the fake API."""
    return TeamworkClient(teamwork_config, http_client=teamwork_http)


@pytest.fixture
def account():
    """Account info matching the fake API's account."""
    return AccountInfo(
        id="545",
        base_url=BASE_URL,
        user_id="77",
        name="Ada Lovelace",
        company="Acme",
        company_id="12",
    )


# ==============================================================================
# Connection fakes
# ==============================================================================


class FakeGateway:
    """
    In-memory ConnectionGateway.

    Attributes:
        projects: Connection id -> projects returned by get_projects
        task_lists: (connection id, project id) -> task lists
        error: If set, raised by every call
        calls: (operation, args) for every call, in order
    """

    def __init__(self, account: AccountInfo) -> None:
        self.account = account
        self.projects: dict[str, dict[str, Project]] = {}
        self.task_lists: dict[tuple[str, str], dict[str, TaskList]] = {}
        self.error: Exception | None = None
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def add_connection(self, token: str) -> CreatedConnection:
        self.calls.append(("add_connection", (token,)))
        if self.error is not None:
            raise self.error
        if token != TOKEN:
            raise ConnectionServiceError(
                "Unable to authenticate with Teamwork. "
                "Please verify your token and try again later.",
                status_code=401,
            )
        return CreatedConnection(id="conn-new", type="teamwork", external_data=self.account)

    async def get_projects(self, connection_id: str) -> dict[str, Project]:
        self.calls.append(("get_projects", (connection_id,)))
        if self.error is not None:
            raise self.error
        return dict(self.projects.get(connection_id, {}))

    async def get_task_lists(self, connection_id: str, project_id: str) -> dict[str, TaskList]:
        self.calls.append(("get_task_lists", (connection_id, project_id)))
        if self.error is not None:
            raise self.error
        return dict(self.task_lists.get((connection_id, project_id), {}))


class RecordingPrompt:
    """VerificationPrompt that records what it was asked to show."""

    def __init__(self) -> None:
        self.shown: list[tuple[str, str, str]] = []

    async def verify_account(self, connection_type: str, company: str, name: str) -> None:
        self.shown.append((connection_type, company, name))


@pytest.fixture
def gateway(account):
    """Provide an in-memory connection gateway."""
    return FakeGateway(account)


@pytest.fixture
def prompt():
    return RecordingPrompt()


@pytest.fixture
def store():
    """Provide an empty connection store."""
    return ConnectionStore()


@pytest.fixture
def feed():
    """Provide an empty in-memory change feed."""
    return InMemoryChangeFeed()


@pytest.fixture
def orchestrator_config():
    """Bound every readiness wait so a broken test fails instead of hanging."""
    return OrchestratorConfig(ready_timeout=2.0)


def connection_doc(**overrides: Any) -> dict[str, Any]:
    """A connection document as stored in the connections collection."""
    doc: dict[str, Any] = {
        "type": "teamwork",
        "account_id": "545",
        "base_url": BASE_URL,
        "user_id": "77",
        "name": "Ada Lovelace",
        "company": "Acme",
        "company_id": "12",
    }
    doc.update(overrides)
    return doc


# ==============================================================================
# Configuration isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """
    Keep tests away from real config files and SCOPESYNC_* variables.

    Points XDG_CONFIG_HOME at an empty directory and clears the config cache
    before and after every test.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "SCOPESYNC_TEAMWORK_TIMEOUT",
        "SCOPESYNC_TEAMWORK_MAX_RETRIES",
        "SCOPESYNC_API_BASE_URL",
        "SCOPESYNC_READY_TIMEOUT",
        "TEAMWORK_API_TOKEN",
    ):
        # set first so teardown also removes values loaded from .env files
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def token():
    """The token the fake Teamwork API accepts."""
    return TOKEN


@pytest.fixture
def make_task():
    """Factory for Teamwork todo-item payloads."""
    return task_item


@pytest.fixture
def make_doc():
    """Factory for connection documents."""
    return connection_doc
