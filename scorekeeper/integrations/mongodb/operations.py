"""MongoDB implementation of UndoOperationStorage."""

from datetime import datetime

from scorekeeper.domain import UndoOperation
from scorekeeper.storage import UndoOperationStorage

from .collection import (
    IndexDirection,
    IndexedCollection,
    IndexSpec,
)
from .config import MongoConfiguration


class MongoUndoOperationStorage(UndoOperationStorage):
    """MongoDB-backed undo operation log.

    Each operation is one document keyed by ``operationId``. The redo stamp
    is written with a filter on ``redoneAt: null`` so the check and the
    write happen in one atomic update: of two concurrent redos exactly one
    modifies the document.
    """

    def __init__(self, config: MongoConfiguration) -> None:
        self._collection = IndexedCollection(
            config.undo_operations,
            indexes=[
                IndexSpec(
                    keys=[("operationId", IndexDirection.ASC)],
                    unique=True,
                    name="operationId_unique",
                ),
                IndexSpec(
                    keys=[
                        ("matchId", IndexDirection.ASC),
                        ("timestamp", IndexDirection.DESC),
                    ],
                    name="matchId_timestamp",
                ),
            ],
        )

    async def initialize_schema(self) -> None:
        await self._collection.ensure_indexes()

    async def on_startup(self) -> None:
        await self.initialize_schema()

    async def on_shutdown(self) -> None:
        pass

    async def insert(self, operation: UndoOperation) -> None:
        await self._collection.insert_one(operation.to_document())

    async def find_by_id(self, operation_id: str) -> UndoOperation | None:
        doc = await self._collection.find_one({"operationId": operation_id})
        return UndoOperation.from_document(doc) if doc is not None else None

    async def mark_redone(self, operation_id: str, redone_at: datetime, redone_by: str) -> bool:
        modified = await self._collection.update_one(
            {"operationId": operation_id, "redoneAt": None},
            {"$set": {"redoneAt": redone_at, "redoneBy": redone_by}},
        )
        return modified == 1

    async def find_recent(self, match_id: str, limit: int) -> list[UndoOperation]:
        docs = await self._collection.find(
            {"matchId": match_id},
            sort=[
                ("timestamp", IndexDirection.DESC),
                ("operationId", IndexDirection.DESC),
            ],
            limit=limit,
        )
        return [UndoOperation.from_document(doc) for doc in docs]
