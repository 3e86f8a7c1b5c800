"""Reversible bulk retraction of delivery ranges."""

import logging

from .aggregator import Aggregator
from .domain import (
    DEFAULT_ENTERED_BY,
    AggregateState,
    AlreadyRedoneError,
    CapturedDelivery,
    DeliveryRecord,
    DeliverySummary,
    DocumentModel,
    EmptyRangeError,
    FieldViolation,
    KeyRange,
    NotFoundError,
    PartialRedoError,
    PartialUndoError,
    RangePreview,
    ScorekeeperError,
    UndoOperation,
    UndoOperationSummary,
    ValidationError,
    key_ordinal,
    key_violations,
    utc_now,
)
from .storage import UndoOperationStorage
from .store import EventStore

LOGGER = logging.getLogger(__name__)

INVALID_RANGE = "INVALID_RANGE"


class UndoOutcome(DocumentModel):
    operation: UndoOperation
    state: AggregateState
    notified: bool = False


class RedoOutcome(DocumentModel):
    operation: UndoOperation
    restored: list[DeliverySummary]
    state: AggregateState
    notified: bool = False


def validate_range(from_key: str, to_key: str) -> tuple[int, int]:
    """Check both range bounds and return their ordinals.

    Raises:
        ValidationError: With code ``INVALID_RANGE`` if a key is malformed,
            a ball is outside 1..6, or the range runs backwards.
    """
    violations = key_violations("fromKey", from_key) + key_violations("toKey", to_key)
    if violations:
        raise ValidationError(violations, code=INVALID_RANGE)

    low, high = key_ordinal(from_key), key_ordinal(to_key)
    if low > high:
        raise ValidationError(
            [FieldViolation("range", "fromKey must not come after toKey", f"{from_key}-{to_key}")],
            code=INVALID_RANGE,
        )
    return low, high


class RangeUndoRedo:
    """Tombstones ranges of deliveries and reinstates them on demand.

    An undo writes one ``tombstoned`` version per active delivery in the
    range and records an :class:`UndoOperation` with the pre-tombstone
    values. A redo writes one ``restored`` version per captured delivery and
    can succeed at most once per operation. Ranges are ordered by
    ``over * 10 + ball``, not by arrival time.

    There is no rollback primitive underneath: a bulk write that fails half
    way raises :class:`PartialUndoError` or :class:`PartialRedoError` with
    the exact keys on each side of the failure.

    Example:
        >>> undo_redo = RangeUndoRedo(store, operations, aggregator)
        >>> outcome = await undo_redo.undo_range("default", "1.2", "1.5", "umpire")
        >>> outcome.state.total_runs
        2
        >>> await undo_redo.redo(outcome.operation.operation_id, "umpire")
    """

    __slots__ = ("store", "operations", "aggregator")

    def __init__(self, store: EventStore, operations: UndoOperationStorage, aggregator: Aggregator):
        self.store = store
        self.operations = operations
        self.aggregator = aggregator

    async def active_non_tombstoned(self, match_id: str) -> list[DeliveryRecord]:
        return await self.aggregator.active_non_tombstoned(match_id)

    async def select_range(self, match_id: str, from_key: str, to_key: str) -> list[DeliveryRecord]:
        """Return the counted deliveries whose ordinal lies in the inclusive range.

        Raises:
            ValidationError: If the range is invalid.
        """
        low, high = validate_range(from_key, to_key)
        return [
            record
            for record in await self.active_non_tombstoned(match_id)
            if low <= record.ordinal <= high
        ]

    async def preview(self, match_id: str, from_key: str, to_key: str) -> RangePreview:
        """Show what undoing a range would remove. Never writes."""
        selected = await self.select_range(match_id, from_key, to_key)
        return RangePreview(
            match_id=match_id,
            range=KeyRange(from_key=from_key, to_key=to_key),
            events=[DeliverySummary.from_record(record) for record in selected],
            runs_impact=sum(record.runs for record in selected),
            wickets_impact=sum(1 for record in selected if record.wicket),
        )

    async def undo_range(
        self,
        match_id: str,
        from_key: str,
        to_key: str,
        undone_by: str = DEFAULT_ENTERED_BY,
        reason: str = "",
    ) -> UndoOutcome:
        """Tombstone every counted delivery in ``[from_key, to_key]``.

        Args:
            match_id: Match to operate on.
            from_key: First key of the range, e.g. ``"1.2"``.
            to_key: Last key of the range, inclusive.
            undone_by: Attribution stored on the tombstones and the operation.
            reason: Free-text reason kept in the operation log.

        Returns:
            The recorded operation and the recomputed score.

        Raises:
            ValidationError: If the range is invalid.
            EmptyRangeError: If no counted delivery falls in the range.
            PartialUndoError: If the writes stopped part way.
            StorageError: If the very first write failed and nothing changed.
        """
        selected = await self.select_range(match_id, from_key, to_key)
        if not selected:
            raise EmptyRangeError(match_id, from_key, to_key)

        captured: list[CapturedDelivery] = []
        failure: ScorekeeperError | None = None
        for record in selected:
            try:
                await self.store.tombstone(record, undone_by)
            except ScorekeeperError as e:
                failure = e
                break
            captured.append(CapturedDelivery.from_record(record))

        if failure is not None and not captured:
            raise failure

        operation = UndoOperation(
            match_id=match_id,
            range=KeyRange(from_key=from_key, to_key=to_key),
            events_affected=captured,
            undone_by=undone_by,
            reason=reason,
        )
        tombstoned = operation.keys
        failed = [record.key for record in selected[len(captured) :]]

        try:
            await self.operations.insert(operation)
        except ScorekeeperError as e:
            LOGGER.error(
                "Undo tombstoned deliveries but the operation log write failed",
                extra={"match_id": match_id, "keys": tombstoned, "failed_keys": failed},
            )
            raise PartialUndoError(match_id, tombstoned, failed, None, str(e)) from e

        if failure is not None:
            LOGGER.error(
                "Undo stopped part way through the range",
                extra={
                    "match_id": match_id,
                    "operation_id": operation.operation_id,
                    "keys": tombstoned,
                    "failed_keys": failed,
                },
            )
            raise PartialUndoError(
                match_id, tombstoned, failed, operation.operation_id, str(failure)
            ) from failure

        LOGGER.info(
            "Undid delivery range",
            extra={
                "match_id": match_id,
                "operation_id": operation.operation_id,
                "range": str(operation.range),
                "keys": tombstoned,
            },
        )
        return UndoOutcome(operation=operation, state=await self.aggregator.compute(match_id))

    async def redo(self, operation_id: str, redone_by: str = DEFAULT_ENTERED_BY) -> RedoOutcome:
        """Reinstate the deliveries captured by an undo operation.

        The operation is claimed first by stamping ``redoneAt`` only if it is
        still unset, so of two concurrent redos exactly one proceeds. Only
        the captured keys are touched, whatever happened around them since.

        Raises:
            NotFoundError: If no operation has this id.
            AlreadyRedoneError: If the operation was already redone.
            PartialRedoError: If restoring stopped after the claim.
        """
        operation = await self.operations.find_by_id(operation_id)
        if operation is None:
            raise NotFoundError(operation_id)
        if not operation.can_redo:
            raise AlreadyRedoneError(operation_id, operation.redone_at)

        redone_at = utc_now()
        if not await self.operations.mark_redone(operation_id, redone_at, redone_by):
            current = await self.operations.find_by_id(operation_id)
            raise AlreadyRedoneError(operation_id, current.redone_at if current else None)

        operation = operation.model_copy(update={"redone_at": redone_at, "redone_by": redone_by})

        restored: list[DeliveryRecord] = []
        for captured in operation.events_affected:
            try:
                restored.append(
                    await self.store.restore(captured, operation.match_id, redone_by)
                )
            except ScorekeeperError as e:
                restored_keys = [record.key for record in restored]
                failed_keys = operation.keys[len(restored) :]
                LOGGER.error(
                    "Redo stopped part way through the captured deliveries",
                    extra={
                        "match_id": operation.match_id,
                        "operation_id": operation_id,
                        "keys": restored_keys,
                        "failed_keys": failed_keys,
                    },
                )
                raise PartialRedoError(operation_id, restored_keys, failed_keys, str(e)) from e

        LOGGER.info(
            "Redid undo operation",
            extra={
                "match_id": operation.match_id,
                "operation_id": operation_id,
                "keys": operation.keys,
            },
        )
        return RedoOutcome(
            operation=operation,
            restored=[DeliverySummary.from_record(record) for record in restored],
            state=await self.aggregator.compute(operation.match_id),
        )

    async def history(self, match_id: str, limit: int) -> list[UndoOperationSummary]:
        """Return the most recent undo operations of a match, newest first."""
        operations = await self.operations.find_recent(match_id, limit)
        return [UndoOperationSummary.from_operation(operation) for operation in operations]
