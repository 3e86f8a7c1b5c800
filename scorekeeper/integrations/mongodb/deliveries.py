"""MongoDB implementation of DeliveryStorage."""

from pymongo.errors import DuplicateKeyError

from scorekeeper.domain import ConcurrencyError, DeliveryRecord
from scorekeeper.storage import DeliveryStorage

from .collection import (
    IndexDirection,
    IndexedCollection,
    IndexSpec,
)
from .config import MongoConfiguration


class MongoDeliveryStorage(DeliveryStorage):
    """MongoDB-backed delivery storage.

    Every version of every delivery is one document in the events
    collection, using the durable camelCase field names:

        {
            "key": "4.2",
            "matchId": "default",
            "over": 4, "ball": 2, "runs": 0, "wicket": false,
            "timestamp": ISODate(...),
            "kind": "correction",
            "version": 2,
            "previousSnapshot": {"runs": 6, "wicket": false},
            "enteredBy": "scorer"
        }

    A unique index on ``(matchId, key, version)`` turns a lost
    read-then-write race into a :class:`ConcurrencyError` instead of a
    duplicate version.

    Example:
        >>> config = MongoConfiguration()
        >>> storage = MongoDeliveryStorage(config)
        >>> await storage.insert(record)
        >>> active = await storage.find_active_per_key("default")
    """

    def __init__(self, config: MongoConfiguration) -> None:
        self._collection = IndexedCollection(
            config.events,
            indexes=[
                IndexSpec(
                    keys=[
                        ("matchId", IndexDirection.ASC),
                        ("key", IndexDirection.ASC),
                        ("version", IndexDirection.ASC),
                    ],
                    unique=True,
                    name="matchId_key_version_unique",
                ),
                IndexSpec(
                    keys=[
                        ("matchId", IndexDirection.ASC),
                        ("over", IndexDirection.ASC),
                        ("ball", IndexDirection.ASC),
                    ],
                    name="matchId_over_ball",
                ),
                IndexSpec(
                    keys=[
                        ("matchId", IndexDirection.ASC),
                        ("timestamp", IndexDirection.ASC),
                    ],
                    name="matchId_timestamp",
                ),
            ],
        )

    async def initialize_schema(self) -> None:
        """Create indexes eagerly instead of on first use."""
        await self._collection.ensure_indexes()

    async def on_startup(self) -> None:
        await self.initialize_schema()

    async def on_shutdown(self) -> None:
        pass

    async def insert(self, record: DeliveryRecord) -> None:
        try:
            await self._collection.insert_one(record.to_document())
        except DuplicateKeyError:
            raise ConcurrencyError(record.match_id, record.key, record.version) from None

    async def find_latest_version(self, match_id: str, key: str) -> DeliveryRecord | None:
        doc = await self._collection.find_one(
            {"matchId": match_id, "key": key},
            sort=[("version", IndexDirection.DESC)],
        )
        return DeliveryRecord.from_document(doc) if doc is not None else None

    async def find_active_per_key(self, match_id: str) -> list[DeliveryRecord]:
        docs = await self._collection.aggregate(
            [
                {"$match": {"matchId": match_id}},
                {"$sort": {"key": 1, "version": -1}},
                {"$group": {"_id": "$key", "latest": {"$first": "$$ROOT"}}},
                {"$replaceRoot": {"newRoot": "$latest"}},
                {"$sort": {"over": 1, "ball": 1}},
            ]
        )
        return [DeliveryRecord.from_document(doc) for doc in docs]

    async def find_all(self, match_id: str) -> list[DeliveryRecord]:
        docs = await self._collection.find(
            {"matchId": match_id},
            sort=[
                ("over", IndexDirection.ASC),
                ("ball", IndexDirection.ASC),
                ("version", IndexDirection.ASC),
            ],
        )
        return [DeliveryRecord.from_document(doc) for doc in docs]
