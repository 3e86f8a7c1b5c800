"""Undo operation storage interface and its in-memory implementation."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..domain import UndoOperation


class UndoOperationStorage(ABC):
    """Abstract interface for the undo operation log.

    Operations are inserted once, stamped once on redo and never deleted.
    """

    @abstractmethod
    async def insert(self, operation: UndoOperation) -> None:
        """Persist a new undo operation.

        Raises:
            StorageError: If the underlying store fails.
        """
        ...

    @abstractmethod
    async def find_by_id(self, operation_id: str) -> UndoOperation | None:
        """Load an operation by id, or None if it does not exist."""
        ...

    @abstractmethod
    async def mark_redone(self, operation_id: str, redone_at: datetime, redone_by: str) -> bool:
        """Stamp ``redone_at``/``redone_by`` if and only if they are unset.

        The check and the write must be a single atomic step: this transition
        is what keeps two concurrent redos from both succeeding.

        Returns:
            True if this call set the stamp, False if the operation does not
            exist or was already redone.
        """
        ...

    @abstractmethod
    async def find_recent(self, match_id: str, limit: int) -> list[UndoOperation]:
        """Return up to ``limit`` operations of a match, newest first."""
        ...


class InMemoryUndoOperationStorage(UndoOperationStorage):
    """Dictionary-based in-memory undo operation log for tests and demos."""

    def __init__(self) -> None:
        self.by_id: dict[str, UndoOperation] = {}

    async def insert(self, operation: UndoOperation) -> None:
        self.by_id[operation.operation_id] = operation

    async def find_by_id(self, operation_id: str) -> UndoOperation | None:
        return self.by_id.get(operation_id)

    async def mark_redone(self, operation_id: str, redone_at: datetime, redone_by: str) -> bool:
        operation = self.by_id.get(operation_id)
        if operation is None or operation.redone_at is not None:
            return False

        self.by_id[operation_id] = operation.model_copy(
            update={"redone_at": redone_at, "redone_by": redone_by}
        )
        return True

    async def find_recent(self, match_id: str, limit: int) -> list[UndoOperation]:
        operations = [op for op in self.by_id.values() if op.match_id == match_id]
        operations.sort(key=lambda op: (op.timestamp, op.operation_id), reverse=True)
        return operations[:limit]
