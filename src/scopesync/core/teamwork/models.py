"""
Teamwork resource models.

Pydantic models for the account, projects, task lists and tasks returned by
the Teamwork client. Field names are Python-side; the mapping from
Teamwork's hyphenated JSON keys lives in the client's parse helpers.

Example:
    >>> from scopesync.core.teamwork.models import Task
    >>> task = Task(id="10", name="Design", estimation=1.5)
    >>> task.is_root
    True
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

MINUTES_PER_HOUR = 60


def minutes_to_hours(minutes: int | float | str | None) -> float:
    """Convert Teamwork's estimated-minutes (often a string) to hours."""
    if minutes in (None, ""):
        return 0.0
    return float(minutes) / MINUTES_PER_HOUR


def hours_to_minutes(hours: float) -> int:
    """Convert hours to the whole minutes Teamwork stores."""
    return int(round(hours * MINUTES_PER_HOUR))


def _as_id(v: object) -> str:
    if v is None:
        return ""
    return str(v)


class AccountInfo(BaseModel):
    """
    The account a token authenticates against.

    Attributes:
        id: Teamwork account id
        base_url: Account-specific API root (ends with "/")
        user_id: Id of the user owning the token
        name: User's first and last name joined by a space
        company: Company name
        company_id: Company id
    """

    id: str
    base_url: str
    user_id: str
    name: str = ""
    company: str = ""
    company_id: str = ""

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("id", "user_id", "company_id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return _as_id(v)

    @field_validator("base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        """Endpoint paths are appended directly, so base_url must end in '/'."""
        return v if v.endswith("/") else f"{v}/"


class TaskList(BaseModel):
    """A Teamwork task list (a named group of tasks inside a project)."""

    id: str
    name: str = ""
    description: str | None = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return _as_id(v)


class TaskListPage(BaseModel):
    """
    One page of task lists.

    page and total_pages come from the x-page / x-pages response headers.
    """

    page: int = 1
    total_pages: int = 1
    task_lists: list[TaskList] = Field(default_factory=list)


class Project(BaseModel):
    """
    A Teamwork project.

    task_lists stays None until the project has been selected and its task
    lists fetched; an empty dict means "fetched, none exist".
    """

    id: str
    name: str = ""
    description: str | None = ""
    created: str | None = None
    task_lists: dict[str, TaskList] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return _as_id(v)


class Task(BaseModel):
    """
    A Teamwork task, possibly with subtasks.

    parent is the empty string for top-level tasks. children is filled in
    by build_task_tree; a task fetched on its own has none.
    """

    id: str
    name: str = ""
    description: str | None = ""
    parent: str = ""
    estimation: float = 0.0
    children: list[Task] = Field(default_factory=list)

    @field_validator("id", "parent", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return _as_id(v)

    @property
    def is_root(self) -> bool:
        return self.parent == ""

    def walk(self) -> list[Task]:
        """This task followed by all of its descendants, depth first."""
        nodes: list[Task] = []
        stack = [self]
        while stack:
            node = stack.pop()
            nodes.append(node)
            stack.extend(reversed(node.children))
        return nodes


class TaskPage(BaseModel):
    """One page of flat (not yet tree-shaped) tasks."""

    page: int = 1
    total_pages: int = 1
    tasks: list[Task] = Field(default_factory=list)
