"""Append-only, versioned delivery store."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .domain import (
    DEFAULT_ENTERED_BY,
    CapturedDelivery,
    ConcurrencyError,
    DeliveryIntent,
    DeliveryRecord,
    DocumentModel,
    PreviousSnapshot,
    ProcessingStats,
    RecordKind,
)
from .storage import DeliveryStorage

LOGGER = logging.getLogger(__name__)


class AppliedDelivery(DocumentModel):
    """The version written by :meth:`EventStore.apply`."""

    record: DeliveryRecord
    is_correction: bool


class EventStore:
    """Owns delivery persistence and version assignment.

    Every write appends a new immutable :class:`DeliveryRecord`: version 1
    for an unseen key, ``active.version + 1`` otherwise. Nothing is ever
    updated or deleted.

    Version assignment is a read-then-write. The storage rejects a second
    record with the same ``(match_id, key, version)``, and :meth:`apply`
    re-reads and retries a lost race up to ``max_attempts`` times.

    Attributes:
        storage: Backing delivery storage.
        max_attempts: Attempts per apply (initial + retries). Must be positive.
        retry_delay: Delay in seconds between attempts. Must be non-negative.

    Examples:
        >>> store = EventStore(InMemoryDeliveryStorage())
        >>> applied = await store.apply({"over": 4, "ball": 2, "runs": 6})
        >>> applied.record.version
        1
        >>> applied = await store.apply({"over": 4, "ball": 2, "runs": 0})
        >>> applied.is_correction, applied.record.previous_snapshot.runs
        (True, 6)
    """

    __slots__ = ("storage", "max_attempts", "retry_delay")

    def __init__(self, storage: DeliveryStorage, max_attempts: int = 3, retry_delay: float = 0.05):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        if retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")
        self.storage = storage
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def apply(self, intent: DeliveryIntent | Mapping[str, Any]) -> AppliedDelivery:
        """Record a delivery, as a new key or as a correction of an existing one.

        Args:
            intent: A validated intent, or raw input to validate.

        Returns:
            The written record and whether it corrected an earlier version.

        Raises:
            ValidationError: If the input is out of range. Nothing is written.
            StorageError: If the storage fails or times out.
            ConcurrencyError: If every attempt lost a version race.
        """
        if not isinstance(intent, DeliveryIntent):
            intent = DeliveryIntent.parse(intent)

        last_error: ConcurrencyError | None = None
        for attempt in range(self.max_attempts):
            try:
                return await self._write_next_version(intent)
            except ConcurrencyError as e:
                last_error = e
                LOGGER.warning(
                    f"Concurrency error on attempt {attempt + 1}/{self.max_attempts}: {e}",
                    extra={"match_id": intent.match_id, "key": intent.key, "version": e.version},
                )
                if attempt < self.max_attempts - 1:
                    await asyncio.sleep(self.retry_delay)

        raise ConcurrencyError(
            intent.match_id, intent.key, last_error.version if last_error else 0
        ) from last_error

    async def _write_next_version(self, intent: DeliveryIntent) -> AppliedDelivery:
        active = await self.storage.find_latest_version(intent.match_id, intent.key)
        if active is None:
            record = DeliveryRecord(
                key=intent.key,
                match_id=intent.match_id,
                over=intent.over,
                ball=intent.ball,
                runs=intent.runs,
                wicket=intent.wicket,
                entered_by=intent.entered_by,
            )
        else:
            record = DeliveryRecord(
                key=intent.key,
                match_id=intent.match_id,
                over=intent.over,
                ball=intent.ball,
                runs=intent.runs,
                wicket=intent.wicket,
                kind=RecordKind.CORRECTION,
                version=active.version + 1,
                previous_snapshot=active.snapshot(),
                entered_by=intent.entered_by,
            )

        await self.storage.insert(record)
        return AppliedDelivery(record=record, is_correction=active is not None)

    async def tombstone(
        self, active: DeliveryRecord, entered_by: str = DEFAULT_ENTERED_BY
    ) -> DeliveryRecord:
        """Append a ``tombstoned`` version on top of ``active``.

        The stored runs and wicket are kept for audit; aggregation skips the
        key regardless.

        Raises:
            StorageError: If the storage fails or times out.
            ConcurrencyError: If ``active`` is no longer the latest version.
        """
        record = DeliveryRecord(
            key=active.key,
            match_id=active.match_id,
            over=active.over,
            ball=active.ball,
            runs=active.runs,
            wicket=active.wicket,
            kind=RecordKind.TOMBSTONED,
            version=active.version + 1,
            previous_snapshot=active.snapshot(with_lineage=True),
            entered_by=entered_by,
        )
        await self.storage.insert(record)
        return record

    async def restore(
        self, captured: CapturedDelivery, match_id: str, entered_by: str = DEFAULT_ENTERED_BY
    ) -> DeliveryRecord:
        """Append a ``restored`` version carrying the captured runs and wicket.

        The previous snapshot is taken from whatever record is active right
        before the restore.

        Raises:
            StorageError: If the storage fails or times out.
            ConcurrencyError: If another writer appended in between.
        """
        active = await self.storage.find_latest_version(match_id, captured.key)
        record = DeliveryRecord(
            key=captured.key,
            match_id=match_id,
            over=captured.over,
            ball=captured.ball,
            runs=captured.runs,
            wicket=captured.wicket,
            kind=RecordKind.RESTORED,
            version=active.version + 1 if active is not None else 1,
            previous_snapshot=(
                active.snapshot(with_lineage=True)
                if active is not None
                else PreviousSnapshot(runs=captured.runs, wicket=captured.wicket)
            ),
            entered_by=entered_by,
        )
        if active is not None and not active.is_tombstoned:
            LOGGER.warning(
                "Restoring a delivery that is not tombstoned",
                extra={"match_id": match_id, "key": captured.key, "version": active.version},
            )
        await self.storage.insert(record)
        return record

    async def latest(self, match_id: str, key: str) -> DeliveryRecord | None:
        """Return the active record of one key, tombstoned or not."""
        return await self.storage.find_latest_version(match_id, key)

    async def active_events(self, match_id: str) -> list[DeliveryRecord]:
        """Return the active record of every key, of any kind, by ``(over, ball)``."""
        return await self.storage.find_active_per_key(match_id)

    async def all_versions(self, match_id: str) -> list[DeliveryRecord]:
        """Return the full audit trail by ``(over, ball, version)``."""
        return await self.storage.find_all(match_id)

    async def recent_by_timestamp(self, match_id: str, limit: int) -> list[DeliveryRecord]:
        """Return up to ``limit`` active records, most recently written first.

        For human-facing logs only; never used to order the aggregate. Records
        written at the same instant are ordered by position, latest first.
        """
        active = await self.storage.find_active_per_key(match_id)
        active.sort(key=lambda r: (r.timestamp, r.over, r.ball), reverse=True)
        return active[:limit]

    async def processing_stats(self, match_id: str) -> ProcessingStats:
        """Count versions and corrections across the whole audit trail."""
        versions = await self.storage.find_all(match_id)
        active = await self.storage.find_active_per_key(match_id)

        corrections_by_key: dict[str, int] = {}
        for record in versions:
            if record.kind == RecordKind.CORRECTION:
                corrections_by_key[record.key] = corrections_by_key.get(record.key, 0) + 1

        return ProcessingStats(
            match_id=match_id,
            total_events=len(active),
            total_versions=len(versions),
            total_corrections=sum(corrections_by_key.values()),
            events_with_corrections=len(corrections_by_key),
            corrections_by_key=corrections_by_key,
            last_processed=max((r.timestamp for r in versions), default=None),
        )
