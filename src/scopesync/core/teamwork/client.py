"""
Async client for the Teamwork task-tracking API.

Authenticates with a personal API token, fetches projects, task lists and
tasks (following Teamwork's header-based pagination), rebuilds the subtask
hierarchy, and writes estimations back.

Authentication uses Basic-style credentials: the token as user name and a
literal placeholder password, base64-encoded into the Authorization header.

API Endpoints:
- Authenticate: GET https://authenticate.teamwork.com/authenticate.json
- Projects: GET {baseUrl}projects.json
- Task lists: GET {baseUrl}projects/{projectId}/tasklists.json?page={page}
- Tasks: GET {baseUrl}tasklists/{taskListId}/tasks.json?page={page}
- Task: GET|PUT {baseUrl}tasks/{taskId}.json

Paged responses report their position in the x-page and x-pages headers.

Every failure is logged with its cause and re-raised as a single
AuthError, FetchError or WriteError with a fixed message.

Example:
    >>> async with TeamworkClient() as client:
    ...     account = await client.validate_token(token)
    ...     forest = await client.get_tasks(token, "1234")
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from scopesync.core.config.models import TeamworkConfig
from scopesync.core.teamwork.exceptions import (
    PROJECTS_ERROR_MESSAGE,
    TASK_ERROR_MESSAGE,
    TASK_LISTS_ERROR_MESSAGE,
    TASKS_ERROR_MESSAGE,
    AuthError,
    FetchError,
    WriteError,
)
from scopesync.core.teamwork.http import RetryConfig, retry_async
from scopesync.core.teamwork.models import (
    AccountInfo,
    Project,
    Task,
    TaskList,
    TaskListPage,
    TaskPage,
    hours_to_minutes,
    minutes_to_hours,
)
from scopesync.core.teamwork.tree import build_task_tree

logger = logging.getLogger(__name__)

P = TypeVar("P")

# Errors that mean "the remote call or its body was unusable"
_REMOTE_FAILURES = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


def encode_credentials(token: str, password: str = "X") -> str:
    """Return the Authorization header value for a Teamwork token."""
    raw = f"{token}:{password}".encode()
    return f"BASIC {base64.b64encode(raw).decode('ascii')}"


def _header_int(response: httpx.Response, name: str) -> int:
    try:
        return int(response.headers.get(name, 1))
    except (TypeError, ValueError):
        return 1


def parse_account(body: dict[str, Any]) -> AccountInfo:
    account = body["account"]
    return AccountInfo(
        id=account["id"],
        base_url=account["URL"],
        user_id=account["userId"],
        name=f"{account.get('firstname', '')} {account.get('lastname', '')}",
        company=account.get("companyname", ""),
        company_id=account.get("companyid", ""),
    )


def parse_project(project: dict[str, Any]) -> Project:
    return Project(
        id=project["id"],
        name=project.get("name", ""),
        description=project.get("description", ""),
        created=project.get("created-on"),
    )


def parse_task_list(task_list: dict[str, Any]) -> TaskList:
    return TaskList(
        id=task_list["id"],
        name=task_list.get("name", ""),
        description=task_list.get("description", ""),
    )


def parse_task(item: dict[str, Any]) -> Task:
    return Task(
        id=item["id"],
        name=item.get("content", ""),
        description=item.get("description", ""),
        parent=item.get("parentTaskId") or "",
        estimation=minutes_to_hours(item.get("estimated-minutes")),
    )


class TeamworkClient:
    """
    Teamwork API client.

    Holds one httpx.AsyncClient for its lifetime (created on demand unless
    injected) and a per-token cache of account info, so operations that need
    the account base URL authenticate once rather than once per page.

    Attributes:
        config: Teamwork settings (auth URL, timeout, retries)
    """

    def __init__(
        self,
        config: TeamworkConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or TeamworkConfig()
        self._http = http_client
        self._owns_http = http_client is None
        self._accounts: dict[str, AccountInfo] = {}
        self._retry = RetryConfig(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
        )

    async def __aenter__(self) -> TeamworkClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.config.timeout, follow_redirects=True)
        return self._http

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": encode_credentials(token, self.config.password_placeholder),
        }

    async def _request_once(
        self, method: str, url: str, token: str, **kwargs: Any
    ) -> httpx.Response:
        response = await self.http.request(method, url, headers=self._headers(token), **kwargs)
        response.raise_for_status()
        return response

    async def _request(self, method: str, url: str, token: str, **kwargs: Any) -> httpx.Response:
        return await retry_async(self._request_once, self._retry, method, url, token, **kwargs)

    async def _account(self, token: str) -> AccountInfo:
        cached = self._accounts.get(token)
        if cached is not None:
            return cached
        return await self.validate_token(token)

    def forget(self, token: str) -> None:
        """Drop cached account info for a token (e.g. after it was revoked)."""
        self._accounts.pop(token, None)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def validate_token(self, token: str) -> AccountInfo:
        """
        Authenticate a token and describe the account behind it.

        Always calls the remote service; a successful result refreshes the
        per-token cache.

        Raises:
            AuthError: On any transport, status or parse failure
        """
        url = self.config.auth_url
        try:
            response = await self._request("GET", url, token)
            account = parse_account(response.json())
        except _REMOTE_FAILURES as e:
            logger.warning("Teamwork authentication failed (%s): %r", url, e)
            self._accounts.pop(token, None)
            raise AuthError() from None

        self._accounts[token] = account
        return account

    async def get_projects(self, token: str, base_url: str | None = None) -> list[Project]:
        """
        List the account's projects (single page).

        Args:
            token: Teamwork API token
            base_url: Account base URL; resolved through validate_token if omitted

        Raises:
            AuthError: If base_url had to be resolved and the token was rejected
            FetchError: If the projects call failed
        """
        if base_url is None:
            base_url = (await self._account(token)).base_url
        url = f"{_with_slash(base_url)}projects.json"
        try:
            response = await self._request("GET", url, token)
            return [parse_project(p) for p in response.json()["projects"]]
        except _REMOTE_FAILURES as e:
            logger.warning("Teamwork projects fetch failed (%s): %r", url, e)
            raise FetchError(PROJECTS_ERROR_MESSAGE) from None

    async def get_task_lists(self, token: str, project_id: str, page: int = 1) -> TaskListPage:
        """
        Fetch one page of a project's task lists.

        Raises:
            AuthError: If the token was rejected while resolving the base URL
            FetchError: If the task-list call failed
        """
        account = await self._account(token)
        url = f"{account.base_url}projects/{project_id}/tasklists.json"
        try:
            response = await self._request("GET", url, token, params={"page": page})
            return TaskListPage(
                page=_header_int(response, "x-page"),
                total_pages=_header_int(response, "x-pages"),
                task_lists=[parse_task_list(t) for t in response.json()["tasklists"]],
            )
        except _REMOTE_FAILURES as e:
            logger.warning("Teamwork task lists fetch failed (%s page %s): %r", url, page, e)
            raise FetchError(TASK_LISTS_ERROR_MESSAGE, project_id=project_id) from None

    async def get_all_task_lists(self, token: str, project_id: str) -> list[TaskList]:
        """Fetch every page of a project's task lists, deduplicated by id."""
        first = await self.get_task_lists(token, project_id, 1)
        rest = await _remaining_pages(
            first.total_pages, lambda page: self.get_task_lists(token, project_id, page)
        )
        by_id: dict[str, TaskList] = {}
        for page in (first, *rest):
            for task_list in page.task_lists:
                by_id[task_list.id] = task_list
        return list(by_id.values())

    async def _get_tasks_page(self, token: str, task_list_id: str, page: int) -> TaskPage:
        account = await self._account(token)
        url = f"{account.base_url}tasklists/{task_list_id}/tasks.json"
        try:
            response = await self._request("GET", url, token, params={"page": page})
            return TaskPage(
                page=_header_int(response, "x-page"),
                total_pages=_header_int(response, "x-pages"),
                tasks=[parse_task(t) for t in response.json()["todo-items"]],
            )
        except _REMOTE_FAILURES as e:
            logger.warning("Teamwork tasks fetch failed (%s page %s): %r", url, page, e)
            raise FetchError(TASKS_ERROR_MESSAGE, task_list_id=task_list_id) from None

    async def get_tasks(self, token: str, task_list_id: str) -> list[Task]:
        """
        Fetch every task of a task list and return it as a forest.

        Page 1 is fetched first to learn the page count; the remaining pages
        are then fetched concurrently. Pages are combined by task id, so
        their completion order does not matter.

        Raises:
            AuthError: If the token was rejected
            FetchError: If any page fetch failed
        """
        first = await self._get_tasks_page(token, task_list_id, 1)
        rest = await _remaining_pages(
            first.total_pages, lambda page: self._get_tasks_page(token, task_list_id, page)
        )
        tasks = [task for page in (first, *rest) for task in page.tasks]
        return build_task_tree(tasks)

    async def get_task(self, token: str, task_id: str) -> Task:
        """
        Fetch a single task (without children).

        Raises:
            AuthError: If the token was rejected
            FetchError: If the task call failed
        """
        account = await self._account(token)
        url = f"{account.base_url}tasks/{task_id}.json"
        try:
            response = await self._request("GET", url, token)
            return parse_task(response.json()["todo-item"])
        except _REMOTE_FAILURES as e:
            logger.warning("Teamwork task fetch failed (%s): %r", url, e)
            raise FetchError(TASK_ERROR_MESSAGE, task_id=task_id) from None

    async def put_estimation(self, token: str, task_id: str, hours: float) -> bool:
        """
        Write a task's estimation, given in hours.

        Teamwork stores whole minutes as a string; the updated task is not
        read back.

        Returns:
            True once Teamwork accepted the update

        Raises:
            AuthError: If the token was rejected
            WriteError: If the update call failed
        """
        account = await self._account(token)
        url = f"{account.base_url}tasks/{task_id}.json"
        try:
            body = {"todo-item": {"estimated-minutes": str(hours_to_minutes(hours))}}
            await self._request("PUT", url, token, json=body)
        except (*_REMOTE_FAILURES, OverflowError) as e:
            logger.warning("Teamwork estimation update failed (%s): %r", url, e)
            raise WriteError(task_id=task_id) from None
        return True


async def _remaining_pages(
    total_pages: int, fetch: Callable[[int], Awaitable[P]]
) -> list[P]:
    """Fetch pages 2..total_pages concurrently."""
    if total_pages <= 1:
        return []
    return list(await asyncio.gather(*(fetch(page) for page in range(2, total_pages + 1))))


def _with_slash(base_url: str) -> str:
    return base_url if base_url.endswith("/") else f"{base_url}/"
