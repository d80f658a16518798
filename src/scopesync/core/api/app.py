"""
FastAPI application for the internal connection API.

Creates the app, wires the Teamwork client and connection repository into
app.state, and maps domain errors to consistent JSON error responses.
"""

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from scopesync import __version__
from scopesync.core.api.repository import ConnectionNotFoundError, ConnectionRepository
from scopesync.core.api.routes import connections
from scopesync.core.config.models import TeamworkConfig
from scopesync.core.teamwork.client import TeamworkClient
from scopesync.core.teamwork.exceptions import AuthError, TeamworkError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AUTH_ERROR = "AUTH_ERROR"

    # Server errors (5xx)
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_code: ErrorCode
    message: str
    detail: str | None = None


def _error(status_code: int, code: ErrorCode, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(error_code=code, message=message, detail=detail or message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def create_app(
    client: TeamworkClient | None = None,
    repository: ConnectionRepository | None = None,
    teamwork_config: TeamworkConfig | None = None,
) -> FastAPI:
    """
    Build the connection API.

    Args:
        client: Teamwork client (a new one is created from teamwork_config if omitted)
        repository: Connection repository (a new, empty one if omitted)
        teamwork_config: Settings used when creating the client

    Returns:
        Configured FastAPI app with routes under /api
    """
    teamwork_client = client or TeamworkClient(teamwork_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await teamwork_client.aclose()

    app = FastAPI(
        title="ScopeSync Connection API",
        description="Links Teamwork accounts and serves their projects and tasks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.teamwork_client = teamwork_client
    app.state.repository = repository or ConnectionRepository()

    app.include_router(connections.router, prefix="/api", tags=["connections"])

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.exception_handler(TeamworkError)
    async def teamwork_error_handler(request: Request, exc: TeamworkError) -> JSONResponse:
        """
        Report Teamwork failures with the client's fixed message.

        Rejected tokens are the caller's problem (401); everything else is an
        upstream failure (502).
        """
        logger.info("Teamwork error on %s %s: %s", request.method, request.url.path, exc)
        if isinstance(exc, AuthError):
            return _error(status.HTTP_401_UNAUTHORIZED, ErrorCode.AUTH_ERROR, exc.message)
        return _error(status.HTTP_502_BAD_GATEWAY, ErrorCode.UPSTREAM_ERROR, exc.message)

    @app.exception_handler(ConnectionNotFoundError)
    async def not_found_handler(request: Request, exc: ConnectionNotFoundError) -> JSONResponse:
        logger.info("%s on %s %s", exc, request.method, request.url.path)
        return _error(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return the first validation problem without internal detail."""
        logger.warning(
            "Validation error on %s %s: %s", request.method, request.url.path, exc.errors()
        )
        first_error = exc.errors()[0] if exc.errors() else {}
        field = " -> ".join(str(loc) for loc in first_error.get("loc", []))
        error_msg = first_error.get("msg", "Invalid input")
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            f"{field}: {error_msg}" if field else error_msg,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log the traceback; return a clean 500."""
        logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.url.path,
            exc,
            traceback.format_exc(),
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred",
        )

    return app
