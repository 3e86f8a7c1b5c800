"""Domain primitives for versioned delivery tracking.

- DeliveryRecord: one immutable version of one delivery
- DeliveryIntent: validated request to record a delivery
- AggregateState: score replayed from the active deliveries
- UndoOperation: persisted record of one bulk retraction
- OperationResult: explicit success/failure returned at the boundary
"""

from .delivery import (
    DEFAULT_ENTERED_BY,
    DEFAULT_MATCH_ID,
    MAX_BALL,
    MAX_RUNS,
    MIN_BALL,
    DeliveryIntent,
    DeliveryRecord,
    DeliverySummary,
    PreviousSnapshot,
    RecordKind,
    key_ordinal,
    key_violations,
    make_key,
    ordinal,
    parse_key,
)
from .document import DocumentModel, utc_now
from .exceptions import (
    AlreadyRedoneError,
    ConcurrencyError,
    EmptyRangeError,
    FieldViolation,
    NotFoundError,
    PartialRedoError,
    PartialUndoError,
    ScorekeeperError,
    StorageError,
    ValidationError,
)
from .result import ErrorDetail, OperationResult
from .score import (
    EMPTY_OVERS,
    AggregateState,
    Boundaries,
    DetailedStats,
    OverSummary,
    ProcessingStats,
    ProgressionPoint,
    SequenceIssue,
)
from .undo import (
    CapturedDelivery,
    KeyRange,
    RangePreview,
    UndoOperation,
    UndoOperationSummary,
    new_operation_id,
)

__all__ = [
    # Deliveries
    "DEFAULT_ENTERED_BY",
    "DEFAULT_MATCH_ID",
    "MIN_BALL",
    "MAX_BALL",
    "MAX_RUNS",
    "DeliveryIntent",
    "DeliveryRecord",
    "DeliverySummary",
    "PreviousSnapshot",
    "RecordKind",
    "make_key",
    "parse_key",
    "ordinal",
    "key_ordinal",
    "key_violations",
    "DocumentModel",
    "utc_now",
    # Score
    "EMPTY_OVERS",
    "AggregateState",
    "Boundaries",
    "DetailedStats",
    "OverSummary",
    "ProcessingStats",
    "ProgressionPoint",
    "SequenceIssue",
    # Undo
    "CapturedDelivery",
    "KeyRange",
    "RangePreview",
    "UndoOperation",
    "UndoOperationSummary",
    "new_operation_id",
    # Results and errors
    "ErrorDetail",
    "OperationResult",
    "ScorekeeperError",
    "FieldViolation",
    "ValidationError",
    "EmptyRangeError",
    "NotFoundError",
    "AlreadyRedoneError",
    "StorageError",
    "ConcurrencyError",
    "PartialUndoError",
    "PartialRedoError",
]
