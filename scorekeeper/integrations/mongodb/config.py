"""MongoDB configuration using pydantic-settings."""

from functools import cached_property
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.errors import PyMongoError


class MongoConfiguration(BaseSettings):
    """Configuration and factory for MongoDB resources.

    Implements the HasLifecycle protocol so that ``Scorekeeper`` closes the
    client on shutdown.

    All settings can be configured via environment variables with the
    SCOREKEEPER_MONGO_ prefix. For example:
    - SCOREKEEPER_MONGO_URI=mongodb://localhost:27017
    - SCOREKEEPER_MONGO_DATABASE=cricket
    - SCOREKEEPER_MONGO_EVENTS_COLLECTION=events

    The configuration also acts as a factory, providing lazy-initialized
    properties for the MongoDB client, database, and collections.

    Attributes:
        uri: MongoDB connection URI.
        database: Database name to use.
        events_collection: Collection name for delivery versions.
        undo_operations_collection: Collection name for the undo operation log.
        server_selection_timeout_ms: How long the driver waits for a server.
        connect_timeout_ms: Socket connect timeout.

    Example:
        >>> config = MongoConfiguration(database="cricket")
        >>> storage = MongoDeliveryStorage(config)
        >>> await storage.initialize_schema()
        >>> await config.on_shutdown()
    """

    # Connection settings
    uri: str = "mongodb://localhost:27017"
    database: str = "scorekeeper"

    # Collection names
    events_collection: str = "events"
    undo_operations_collection: str = "undoOperations"

    # Driver timeouts
    server_selection_timeout_ms: int = Field(default=5000, ge=0)
    connect_timeout_ms: int = Field(default=5000, ge=0)

    model_config = SettingsConfigDict(env_prefix="SCOREKEEPER_MONGO_")

    @cached_property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        """Get the MongoDB async client.

        The client is lazily created and cached for reuse. Datetimes come
        back timezone aware (UTC).
        """
        return AsyncMongoClient(
            self.uri,
            tz_aware=True,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            connectTimeoutMS=self.connect_timeout_ms,
        )

    @cached_property
    def db(self) -> AsyncDatabase[dict[str, Any]]:
        """Get the MongoDB async database."""
        return self.client[self.database]

    @cached_property
    def events(self) -> AsyncCollection[dict[str, Any]]:
        """Get the delivery events collection."""
        return self.db[self.events_collection]

    @cached_property
    def undo_operations(self) -> AsyncCollection[dict[str, Any]]:
        """Get the undo operations collection."""
        return self.db[self.undo_operations_collection]

    async def verify_connectivity(self) -> bool:
        """Ping the server.

        Returns:
            True if the server answered, False otherwise.
        """
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    # HasLifecycle protocol implementation

    async def on_startup(self) -> None:
        """Called when the application starts.

        No-op for MongoDB - connections are established lazily.
        """
        pass

    async def on_shutdown(self) -> None:
        """Called when the application shuts down.

        Closes the MongoDB client connection if it was created.
        """
        if "client" in self.__dict__:
            await self.client.close()
            for name in ("client", "db", "events", "undo_operations"):
                self.__dict__.pop(name, None)
