"""Undo operation records and the read models built from them."""

from datetime import datetime

from pydantic import Field
from ulid import ULID

from .delivery import DeliveryRecord, DeliverySummary
from .document import DocumentModel, utc_now


def new_operation_id() -> str:
    return str(ULID())


class KeyRange(DocumentModel):
    """Inclusive range of delivery keys, ordered by ``over * 10 + ball``."""

    from_key: str
    to_key: str

    def __str__(self) -> str:
        return f"{self.from_key}-{self.to_key}"


class CapturedDelivery(DocumentModel):
    """Pre-tombstone state of one delivery, kept so redo can reinstate it."""

    key: str
    over: int
    ball: int
    runs: int
    wicket: bool
    version: int
    original_timestamp: datetime

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> "CapturedDelivery":
        return cls(
            key=record.key,
            over=record.over,
            ball=record.ball,
            runs=record.runs,
            wicket=record.wicket,
            version=record.version,
            original_timestamp=record.timestamp,
        )


class UndoOperation(DocumentModel):
    """Persisted record of one bulk retraction.

    Created together with the tombstones of its range, stamped exactly once
    on redo (``redone_at``/``redone_by``), never deleted.
    """

    operation_id: str = Field(default_factory=new_operation_id)
    match_id: str
    range: KeyRange
    events_affected: list[CapturedDelivery]
    undone_by: str
    reason: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    redone_at: datetime | None = None
    redone_by: str | None = None

    @property
    def can_redo(self) -> bool:
        return self.redone_at is None

    @property
    def keys(self) -> list[str]:
        return [event.key for event in self.events_affected]


class UndoOperationSummary(DocumentModel):
    operation_id: str
    range: KeyRange
    events_count: int
    undone_by: str
    reason: str
    timestamp: datetime
    redone_at: datetime | None = None
    redone_by: str | None = None
    can_redo: bool

    @classmethod
    def from_operation(cls, operation: UndoOperation) -> "UndoOperationSummary":
        return cls(
            operation_id=operation.operation_id,
            range=operation.range,
            events_count=len(operation.events_affected),
            undone_by=operation.undone_by,
            reason=operation.reason,
            timestamp=operation.timestamp,
            redone_at=operation.redone_at,
            redone_by=operation.redone_by,
            can_redo=operation.can_redo,
        )


class RangePreview(DocumentModel):
    """What an undo of a range would remove, computed without writing."""

    match_id: str
    range: KeyRange
    events: list[DeliverySummary]
    runs_impact: int
    wickets_impact: int
