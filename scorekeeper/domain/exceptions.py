"""Exceptions raised by the scorekeeper core.

Every error carries a machine-readable ``code`` and a ``to_details()``
payload so the service boundary can turn it into an ``OperationResult``
without inspecting the exception type.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FieldViolation:
    """A single failed constraint on an input field."""

    field: str
    constraint: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field}: {self.constraint} (got {self.value!r})"


class ScorekeeperError(Exception):
    """Root of the scorekeeper error hierarchy."""

    code = "SCOREKEEPER_ERROR"

    def to_details(self) -> dict[str, Any]:
        return {}


class ValidationError(ScorekeeperError):
    """Raised when an intent or range has a bad shape or out-of-range value.

    Validation errors are never persisted and never published.

    Attributes:
        violations: One entry per violated field, naming the constraint.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, violations: list[FieldViolation], code: str | None = None):
        self.violations = violations
        if code is not None:
            self.code = code
        super().__init__("; ".join(str(v) for v in violations))

    def to_details(self) -> dict[str, Any]:
        return {
            "violations": [
                {"field": v.field, "constraint": v.constraint, "value": v.value}
                for v in self.violations
            ]
        }


class EmptyRangeError(ScorekeeperError):
    """Raised when an undo range selects no active deliveries."""

    code = "NO_EVENTS_IN_RANGE"

    def __init__(self, match_id: str, from_key: str, to_key: str):
        self.match_id = match_id
        self.from_key = from_key
        self.to_key = to_key
        super().__init__(f"No active deliveries in range {from_key} to {to_key}")

    def to_details(self) -> dict[str, Any]:
        return {"matchId": self.match_id, "fromKey": self.from_key, "toKey": self.to_key}


class NotFoundError(ScorekeeperError):
    """Raised when an undo operation id does not exist."""

    code = "OPERATION_NOT_FOUND"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"Undo operation {operation_id} not found")

    def to_details(self) -> dict[str, Any]:
        return {"operationId": self.operation_id}


class AlreadyRedoneError(ScorekeeperError):
    """Raised when redo is requested for an operation that was already redone."""

    code = "ALREADY_REDONE"

    def __init__(self, operation_id: str, redone_at: Any = None):
        self.operation_id = operation_id
        self.redone_at = redone_at
        super().__init__(f"Undo operation {operation_id} has already been redone")

    def to_details(self) -> dict[str, Any]:
        return {"operationId": self.operation_id, "redoneAt": self.redone_at}


class StorageError(ScorekeeperError):
    """Raised when a persistence primitive fails or times out.

    The core performs no automatic retry; callers may retry with backoff.
    """

    code = "STORAGE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage operation {operation!r} failed: {reason}")

    def to_details(self) -> dict[str, Any]:
        return {"operation": self.operation, "reason": self.reason}


class ConcurrencyError(ScorekeeperError):
    """Raised when an optimistic version check fails.

    This indicates that another writer appended a version for the same
    ``(match_id, key)`` between the read of the active record and the write
    of the next version.
    """

    code = "CONCURRENCY_ERROR"

    def __init__(self, match_id: str, key: str, version: int):
        self.match_id = match_id
        self.key = key
        self.version = version
        super().__init__(f"Version {version} of {match_id}/{key} already exists")

    def to_details(self) -> dict[str, Any]:
        return {"matchId": self.match_id, "key": self.key, "version": self.version}


class PartialUndoError(ScorekeeperError):
    """Raised when a bulk undo tombstoned records but could not finish.

    Either a later tombstone write failed (the operation is still recorded
    for the written keys) or the operation log itself could not be written
    (``operation_id`` is then ``None``). An operator has to reconcile.
    """

    code = "PARTIAL_UNDO"

    def __init__(
        self,
        match_id: str,
        tombstoned_keys: list[str],
        failed_keys: list[str],
        operation_id: str | None,
        reason: str,
    ):
        self.match_id = match_id
        self.tombstoned_keys = tombstoned_keys
        self.failed_keys = failed_keys
        self.operation_id = operation_id
        self.reason = reason
        super().__init__(
            f"Undo in match {match_id} left keys {tombstoned_keys} tombstoned "
            f"(failed: {failed_keys}, operation recorded: {operation_id}): {reason}"
        )

    def to_details(self) -> dict[str, Any]:
        return {
            "matchId": self.match_id,
            "tombstonedKeys": self.tombstoned_keys,
            "failedKeys": self.failed_keys,
            "operationId": self.operation_id,
            "reason": self.reason,
        }


class PartialRedoError(ScorekeeperError):
    """Raised when a redo was claimed but not every key could be restored."""

    code = "PARTIAL_REDO"

    def __init__(
        self,
        operation_id: str,
        restored_keys: list[str],
        failed_keys: list[str],
        reason: str,
    ):
        self.operation_id = operation_id
        self.restored_keys = restored_keys
        self.failed_keys = failed_keys
        self.reason = reason
        super().__init__(
            f"Redo of {operation_id} restored {restored_keys} but not {failed_keys}: {reason}"
        )

    def to_details(self) -> dict[str, Any]:
        return {
            "operationId": self.operation_id,
            "restoredKeys": self.restored_keys,
            "failedKeys": self.failed_keys,
            "reason": self.reason,
        }
