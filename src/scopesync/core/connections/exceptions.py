"""
Errors for the connection layer.

Exception Hierarchy:
    ConnectionsError (base)
    ├── ConnectionServiceError (internal connection API failed)
    ├── StoreReconciliationAnomaly (feed event that cannot be applied)
    └── OrchestratorError (message shown for the ERROR state)
"""

from scopesync.core.teamwork.exceptions import TeamworkError

GENERIC_ERROR_MESSAGE = "Something went wrong while loading your connections. Please try again."


class ConnectionsError(Exception):
    """
    Base exception for connection errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ConnectionServiceError(ConnectionsError):
    """
    The internal connection API rejected a request or could not be reached.

    The message is the API's own error message when it sent one.
    """

    def __init__(self, message: str, status_code: int | None = None, **context: object) -> None:
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code


class StoreReconciliationAnomaly(ConnectionsError):
    """
    A feed event referenced an unknown connection or carried unusable data.

    Recorded and logged by the reconciler; never raised out of it.
    """

    def __init__(self, doc_id: str, change_type: str) -> None:
        super().__init__(
            f"{change_type} event for connection '{doc_id}' could not be applied",
            doc_id=doc_id,
            change_type=change_type,
        )
        self.doc_id = doc_id
        self.change_type = change_type


class OrchestratorError(ConnectionsError):
    """
    A failure during an orchestrator effect, reduced to a display message.

    Known domain errors keep their own (fixed) message; anything else gets
    a generic one so transport detail never reaches the UI.
    """

    @classmethod
    def from_exception(cls, error: BaseException) -> "OrchestratorError":
        if isinstance(error, OrchestratorError):
            return error
        if isinstance(error, (TeamworkError, ConnectionsError)):
            return cls(error.message, cause=type(error).__name__)
        return cls(GENERIC_ERROR_MESSAGE, cause=type(error).__name__)
