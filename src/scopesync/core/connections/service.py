"""
HTTP client for the internal connection API.

Implements ConnectionGateway against the routes served by
scopesync.core.api (POST /connections and the nested projects routes).
Results are re-keyed by id so they can be merged straight into a
Connection's project map.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from scopesync.core.config.models import ApiConfig
from scopesync.core.connections.exceptions import ConnectionServiceError
from scopesync.core.connections.models import CreatedConnection
from scopesync.core.teamwork.models import Project, TaskList

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "The connection service is unavailable. Please try again later."


def _error_message(response: httpx.Response) -> str:
    """Pull the user-facing message out of an API error body."""
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    return DEFAULT_ERROR_MESSAGE


class HttpConnectionService:
    """
    ConnectionGateway backed by the internal HTTP API.

    Example:
        >>> service = HttpConnectionService("http://127.0.0.1:8000/api")
        >>> projects = await service.get_projects("conn-1")
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    @classmethod
    def from_config(
        cls, config: ApiConfig, http_client: httpx.AsyncClient | None = None
    ) -> HttpConnectionService:
        """Service for the API at config.base_url (SCOPESYNC_API_BASE_URL)."""
        return cls(config.base_url, http_client=http_client)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Connection API %s %s failed: %r", method, url, e)
            raise ConnectionServiceError(DEFAULT_ERROR_MESSAGE) from None

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Connection API %s %s returned %d: %s", method, url, response.status_code, message
            )
            raise ConnectionServiceError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            logger.warning("Connection API %s %s returned a non-JSON body", method, url)
            raise ConnectionServiceError(DEFAULT_ERROR_MESSAGE) from None

    async def add_connection(self, token: str) -> CreatedConnection:
        body = await self._call("POST", "/connections", json={"token": token})
        try:
            return CreatedConnection.model_validate(body)
        except ValidationError:
            raise ConnectionServiceError(DEFAULT_ERROR_MESSAGE) from None

    async def get_projects(self, connection_id: str) -> dict[str, Project]:
        body = await self._call("GET", f"/connections/{connection_id}/projects")
        try:
            projects = [Project.model_validate(p) for p in body["projects"]]
        except (KeyError, TypeError, ValidationError):
            raise ConnectionServiceError(DEFAULT_ERROR_MESSAGE) from None
        return {p.id: p for p in projects}

    async def get_task_lists(self, connection_id: str, project_id: str) -> dict[str, TaskList]:
        body = await self._call(
            "GET", f"/connections/{connection_id}/projects/{project_id}/taskLists"
        )
        try:
            task_lists = [TaskList.model_validate(t) for t in body["taskLists"]]
        except (KeyError, TypeError, ValidationError):
            raise ConnectionServiceError(DEFAULT_ERROR_MESSAGE) from None
        return {t.id: t for t in task_lists}
