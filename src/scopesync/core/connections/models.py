"""
Connection models.

A Connection is a linked Teamwork account plus the projects cached for it.
Connections arrive through a change feed as ChangeEvents and are folded
into the ConnectionStore.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scopesync.core.teamwork.models import AccountInfo, Project


class UiState(str, Enum):
    """Whether the connection store is safe to read for selection."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class ChangeType(str, Enum):
    """Kind of change reported by the feed for one document."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class Connection(BaseModel):
    """
    A linked external account.

    Attributes:
        id: Document id in the connections collection
        type: Integration kind (only "teamwork" today)
        account_id: Teamwork account id
        base_url: Account API root
        user_id: Teamwork user owning the token
        name: Display name of that user
        company: Company name
        company_id: Company id
        projects: Projects by id; None until fetched for this connection
    """

    id: str
    type: str = "teamwork"
    account_id: str = ""
    base_url: str = ""
    user_id: str = ""
    name: str = ""
    company: str = ""
    company_id: str = ""
    projects: dict[str, Project] | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("id", "account_id", "user_id", "company_id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> str:
        return "" if v is None else str(v)

    @classmethod
    def from_account(cls, connection_id: str, account: AccountInfo) -> "Connection":
        """Build a fresh connection for a just-authorized account."""
        return cls(
            id=connection_id,
            account_id=account.id,
            base_url=account.base_url,
            user_id=account.user_id,
            name=account.name,
            company=account.company,
            company_id=account.company_id,
        )

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Connection":
        """Build a connection from a feed document; the document id wins."""
        return cls.model_validate({**data, "id": doc_id})

    def merged(self, changes: dict[str, Any]) -> "Connection":
        """
        Return a copy with only the named fields replaced.

        The id is never changed by a merge.
        """
        data = self.model_dump()
        data.update(changes)
        data["id"] = self.id
        return Connection.model_validate(data)

    def has_project(self, project_id: str) -> bool:
        return bool(self.projects) and project_id in self.projects


class ChangeEvent(BaseModel):
    """
    One add/modify/remove notification from the connections feed.

    For ADDED and REMOVED, data is the full document; for MODIFIED it holds
    only the changed fields.
    """

    type: ChangeType
    doc_id: str
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def added(cls, connection: Connection) -> "ChangeEvent":
        return cls(
            type=ChangeType.ADDED,
            doc_id=connection.id,
            data=connection.model_dump(exclude={"id"}),
        )

    @classmethod
    def modified(cls, doc_id: str, changes: dict[str, Any]) -> "ChangeEvent":
        return cls(type=ChangeType.MODIFIED, doc_id=doc_id, data=dict(changes))

    @classmethod
    def removed(cls, connection: Connection) -> "ChangeEvent":
        return cls(
            type=ChangeType.REMOVED,
            doc_id=connection.id,
            data=connection.model_dump(exclude={"id"}),
        )


class CreatedConnection(BaseModel):
    """
    Response of POST /connections.

    external_data describes the authorized account so the user can confirm
    it is the one they meant to link.
    """

    id: str
    type: str = "teamwork"
    external_data: AccountInfo = Field(alias="externalData")

    model_config = ConfigDict(populate_by_name=True)
