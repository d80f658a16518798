"""
Errors raised by the Teamwork client.

Every client operation fails with exactly one of these, carrying a fixed,
user-facing message. Transport and parsing detail is logged inside the
client and never attached to the raised error.

Exception Hierarchy:
    TeamworkError (base)
    ├── AuthError (token rejected or authentication call failed)
    ├── FetchError (reading a resource failed)
    └── WriteError (updating a resource failed)

Example:
    >>> from scopesync.core.teamwork.exceptions import AuthError
    >>> try:
    ...     raise AuthError()
    ... except AuthError as e:
    ...     print(e)
    Unable to authenticate with Teamwork. Please verify your token and try again later.
"""

AUTH_ERROR_MESSAGE = (
    "Unable to authenticate with Teamwork. Please verify your token and try again later."
)
PROJECTS_ERROR_MESSAGE = (
    "Unable to get projects from Teamwork. Please verify your token and try again later."
)
TASK_LISTS_ERROR_MESSAGE = (
    "Unable to get task lists from Teamwork. "
    "Please verify your token and project id and try again later."
)
TASKS_ERROR_MESSAGE = (
    "Unable to get tasks from Teamwork. "
    "Please verify your token and task list id and try again later."
)
TASK_ERROR_MESSAGE = (
    "Unable to get task from Teamwork. "
    "Please verify your token and task id and try again later."
)
WRITE_ERROR_MESSAGE = (
    "Unable to update task on Teamwork. "
    "Please verify your token and task id and try again later."
)


class TeamworkError(Exception):
    """
    Base exception for all Teamwork client errors.

    Attributes:
        message: Human-readable error message
        context: Identifiers of the resource involved (never credentials)
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class AuthError(TeamworkError):
    """The token was rejected, or the authentication endpoint was unusable."""

    def __init__(self, message: str = AUTH_ERROR_MESSAGE, **context: object) -> None:
        super().__init__(message, **context)


class FetchError(TeamworkError):
    """
    Reading a resource (projects, task lists, tasks) failed.

    Raised for network failures, non-2xx responses and malformed bodies
    alike; the message names the resource, not the cause.
    """


class WriteError(TeamworkError):
    """Updating a task's estimation failed."""

    def __init__(self, message: str = WRITE_ERROR_MESSAGE, **context: object) -> None:
        super().__init__(message, **context)


__all__ = [
    "AUTH_ERROR_MESSAGE",
    "PROJECTS_ERROR_MESSAGE",
    "TASK_LISTS_ERROR_MESSAGE",
    "TASKS_ERROR_MESSAGE",
    "TASK_ERROR_MESSAGE",
    "WRITE_ERROR_MESSAGE",
    "TeamworkError",
    "AuthError",
    "FetchError",
    "WriteError",
]
