"""MongoDB collection wrapper with index management and query helpers.

This module provides an IndexedCollection class that wraps a MongoDB
AsyncCollection with lazy index creation and translates driver failures
into scorekeeper errors, so storage backends only deal with documents.
"""

from enum import IntEnum
from typing import Any

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ...domain import StorageError


class IndexDirection(IntEnum):
    """Sort direction for MongoDB index fields."""

    ASC = ASCENDING
    """Ascending order (1)."""

    DESC = DESCENDING
    """Descending order (-1)."""


class IndexSpec(BaseModel):
    """Specification for a MongoDB index.

    Example:
        >>> # Compound unique index
        >>> IndexSpec(
        ...     keys=[
        ...         ("matchId", IndexDirection.ASC),
        ...         ("key", IndexDirection.ASC),
        ...         ("version", IndexDirection.ASC),
        ...     ],
        ...     unique=True,
        ...     name="matchId_key_version_unique",
        ... )
    """

    keys: list[tuple[str, IndexDirection]]
    """(field_name, direction) tuples."""

    unique: bool = False
    """If True, enforce uniqueness."""

    name: str | None = None
    """Optional explicit index name."""

    async def apply(self, collection: AsyncCollection[dict[str, Any]]) -> None:
        """Apply this index specification to a collection."""
        kwargs: dict[str, Any] = {}
        if self.unique:
            kwargs["unique"] = True
        if self.name is not None:
            kwargs["name"] = self.name

        await collection.create_index(self.keys, **kwargs)


class IndexedCollection:
    """A MongoDB collection wrapper with automatic index management.

    IndexedCollection wraps an AsyncCollection and handles:
    - Lazy index creation (indexes created on first use)
    - Common query patterns (find one, find many, latest, aggregation)
    - Translation of driver errors into :class:`StorageError`

    ``DuplicateKeyError`` is re-raised untouched from inserts so that callers
    can map unique-index violations to their own domain error.

    Example:
        >>> collection = IndexedCollection(
        ...     config.events,
        ...     indexes=[IndexSpec(keys=[("matchId", IndexDirection.ASC)])],
        ... )
        >>> await collection.insert_one(doc)
        >>> for doc in await collection.find({"matchId": "default"}):
        ...     print(doc)
    """

    def __init__(
        self,
        collection: AsyncCollection[dict[str, Any]],
        indexes: list[IndexSpec] | None = None,
    ) -> None:
        self._collection = collection
        self._indexes = indexes or []
        self._indexes_created = False

    async def ensure_indexes(self) -> None:
        """Create indexes if not already created.

        Called automatically by other methods, but can be called
        explicitly for eager initialization.
        """
        if self._indexes_created:
            return

        try:
            for spec in self._indexes:
                await spec.apply(self._collection)
        except PyMongoError as e:
            raise StorageError("create_index", str(e)) from e

        self._indexes_created = True

    async def find_one(
        self,
        filter: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
    ) -> dict[str, Any] | None:
        """Find a single document matching the filter.

        Args:
            filter: MongoDB query filter.
            sort: Optional list of (field, direction) tuples deciding which
                document wins when several match.

        Returns:
            The matching document or None.
        """
        await self.ensure_indexes()
        try:
            result: dict[str, Any] | None = await self._collection.find_one(filter, sort=sort)
        except PyMongoError as e:
            raise StorageError("find_one", str(e)) from e
        return result

    async def find(
        self,
        filter: dict[str, Any],
        sort: list[tuple[str, int]] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents matching the filter.

        Args:
            filter: MongoDB query filter.
            sort: Optional list of (field, direction) tuples.
            limit: Optional maximum number of documents to return.

        Returns:
            Matching documents in cursor order.
        """
        await self.ensure_indexes()

        cursor = self._collection.find(filter)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)

        try:
            return [doc async for doc in cursor]
        except PyMongoError as e:
            raise StorageError("find", str(e)) from e

    async def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline and collect its output."""
        await self.ensure_indexes()
        try:
            cursor = await self._collection.aggregate(pipeline)
            return [doc async for doc in cursor]
        except PyMongoError as e:
            raise StorageError("aggregate", str(e)) from e

    async def insert_one(self, document: dict[str, Any]) -> None:
        """Insert a single document.

        Raises:
            DuplicateKeyError: If a unique index rejects the document.
            StorageError: On any other driver failure.
        """
        await self.ensure_indexes()
        try:
            await self._collection.insert_one(document)
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            raise StorageError("insert_one", str(e)) from e

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
    ) -> int:
        """Update a single document.

        Returns:
            The number of modified documents (0 or 1).
        """
        await self.ensure_indexes()
        try:
            result = await self._collection.update_one(filter, update)
        except PyMongoError as e:
            raise StorageError("update_one", str(e)) from e
        return result.modified_count
