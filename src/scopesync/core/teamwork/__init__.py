"""
Teamwork integration.

Async client for the Teamwork API plus the models and tree builder used to
present a task list as a hierarchy of estimable tasks.
"""

from scopesync.core.teamwork.client import TeamworkClient, encode_credentials
from scopesync.core.teamwork.exceptions import AuthError, FetchError, TeamworkError, WriteError
from scopesync.core.teamwork.models import AccountInfo, Project, Task, TaskList, TaskListPage
from scopesync.core.teamwork.tree import build_task_tree

__all__ = [
    # Client
    "TeamworkClient",
    "encode_credentials",
    # Models
    "AccountInfo",
    "Project",
    "Task",
    "TaskList",
    "TaskListPage",
    "build_task_tree",
    # Errors
    "TeamworkError",
    "AuthError",
    "FetchError",
    "WriteError",
]
