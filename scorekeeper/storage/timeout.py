"""Time-bounded wrappers around the storage interfaces.

No storage call may block indefinitely: every call is given a deadline and
an expired deadline surfaces as :class:`StorageError`.
"""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar

from ..domain import DeliveryRecord, StorageError, UndoOperation
from .deliveries import DeliveryStorage
from .operations import UndoOperationStorage

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    Raises:
        StorageError: If the deadline expires.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError:
        LOGGER.warning(
            "Storage call timed out",
            extra={"operation": operation, "timeout": timeout},
        )
        raise StorageError(operation, f"timed out after {timeout}s") from None


class TimeoutDeliveryStorage(DeliveryStorage):
    """Delivery storage decorator that bounds every call with a timeout."""

    __slots__ = ("inner", "timeout")

    def __init__(self, inner: DeliveryStorage, timeout: float):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.inner = inner
        self.timeout = timeout

    async def insert(self, record: DeliveryRecord) -> None:
        await bounded(self.inner.insert(record), self.timeout, "insert")

    async def find_latest_version(self, match_id: str, key: str) -> DeliveryRecord | None:
        return await bounded(
            self.inner.find_latest_version(match_id, key), self.timeout, "find_latest_version"
        )

    async def find_active_per_key(self, match_id: str) -> list[DeliveryRecord]:
        return await bounded(
            self.inner.find_active_per_key(match_id), self.timeout, "find_active_per_key"
        )

    async def find_all(self, match_id: str) -> list[DeliveryRecord]:
        return await bounded(self.inner.find_all(match_id), self.timeout, "find_all")


class TimeoutUndoOperationStorage(UndoOperationStorage):
    """Undo operation storage decorator that bounds every call with a timeout."""

    __slots__ = ("inner", "timeout")

    def __init__(self, inner: UndoOperationStorage, timeout: float):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.inner = inner
        self.timeout = timeout

    async def insert(self, operation: UndoOperation) -> None:
        await bounded(self.inner.insert(operation), self.timeout, "insert_operation")

    async def find_by_id(self, operation_id: str) -> UndoOperation | None:
        return await bounded(self.inner.find_by_id(operation_id), self.timeout, "find_by_id")

    async def mark_redone(self, operation_id: str, redone_at: datetime, redone_by: str) -> bool:
        return await bounded(
            self.inner.mark_redone(operation_id, redone_at, redone_by),
            self.timeout,
            "mark_redone",
        )

    async def find_recent(self, match_id: str, limit: int) -> list[UndoOperation]:
        return await bounded(self.inner.find_recent(match_id, limit), self.timeout, "find_recent")
