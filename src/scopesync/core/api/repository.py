"""
In-memory connection repository.

Keeps each connection's document together with the Teamwork token it was
created from, and mirrors every write into the connections change feed so
subscribed orchestrators see it. Tokens never go into the feed.
"""

import logging
import uuid

from scopesync.core.connections.feed import InMemoryChangeFeed
from scopesync.core.connections.models import Connection
from scopesync.core.teamwork.models import AccountInfo

logger = logging.getLogger(__name__)


class ConnectionNotFoundError(KeyError):
    """No connection with the requested id."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(connection_id)
        self.connection_id = connection_id

    def __str__(self) -> str:
        return f"Connection '{self.connection_id}' not found"


class ConnectionRepository:
    """Connections by id, with their tokens, published to a change feed."""

    def __init__(self, feed: InMemoryChangeFeed | None = None) -> None:
        self.feed = feed or InMemoryChangeFeed()
        self._connections: dict[str, Connection] = {}
        self._tokens: dict[str, str] = {}

    def create(self, account: AccountInfo, token: str) -> Connection:
        """Store a connection for a freshly authorized account and publish it."""
        connection = Connection.from_account(uuid.uuid4().hex, account)
        self._connections[connection.id] = connection
        self._tokens[connection.id] = token
        self.feed.add(connection.id, connection.model_dump(exclude={"id"}))
        logger.info("Created connection %s for company %s", connection.id, account.company)
        return connection

    def get(self, connection_id: str) -> Connection:
        try:
            return self._connections[connection_id]
        except KeyError:
            raise ConnectionNotFoundError(connection_id) from None

    def token(self, connection_id: str) -> str:
        try:
            return self._tokens[connection_id]
        except KeyError:
            raise ConnectionNotFoundError(connection_id) from None

    def list_connections(self) -> list[Connection]:
        return list(self._connections.values())

    def delete(self, connection_id: str) -> None:
        if connection_id not in self._connections:
            raise ConnectionNotFoundError(connection_id)
        del self._connections[connection_id]
        del self._tokens[connection_id]
        self.feed.remove(connection_id)
        logger.info("Deleted connection %s", connection_id)
