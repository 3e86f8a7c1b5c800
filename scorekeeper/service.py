"""Result-returning facade over the scorekeeper core.

This is what a request layer calls. Components below it raise
:class:`ScorekeeperError` subclasses; every method here turns them into an
:class:`OperationResult` so expected failures never escape as exceptions.
"""

import logging
from collections.abc import Awaitable, Mapping
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import Field

from .aggregator import Aggregator
from .domain import (
    DEFAULT_ENTERED_BY,
    AggregateState,
    AlreadyRedoneError,
    DeliveryIntent,
    DeliveryRecord,
    DetailedStats,
    DocumentModel,
    EmptyRangeError,
    FieldViolation,
    NotFoundError,
    OperationResult,
    PartialRedoError,
    PartialUndoError,
    PreviousSnapshot,
    ProcessingStats,
    ProgressionPoint,
    RangePreview,
    ScorekeeperError,
    SequenceIssue,
    UndoOperationSummary,
    ValidationError,
    utc_now,
)
from .locks import MatchLocks
from .notifier import ChangeNotifier
from .store import EventStore
from .undo import RangeUndoRedo, RedoOutcome, UndoOutcome

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CORRECTION_REASON = "Manual correction"

# Rejections of bad input or bad references, as opposed to infrastructure trouble.
REJECTIONS = (ValidationError, EmptyRangeError, NotFoundError, AlreadyRedoneError)


class DeliveryApplied(DocumentModel):
    record: DeliveryRecord
    is_correction: bool
    state: AggregateState
    notified: bool = False


class CorrectionInfo(DocumentModel):
    original: PreviousSnapshot | None
    reason: str
    corrected_at: datetime = Field(default_factory=utc_now)


class CorrectionApplied(DeliveryApplied):
    correction: CorrectionInfo


class SequenceCheck(DocumentModel):
    match_id: str
    total_events: int
    issues: list[SequenceIssue]

    @property
    def is_valid(self) -> bool:
        return not self.issues


class ScoreService:
    """Entry point for every scorekeeper operation.

    Mutations of one match are serialized with a per-match lock and followed
    by a score update published through the :class:`ChangeNotifier`.
    Validation failures are neither persisted nor published.

    Attributes:
        level: The numeric logging level used for successful mutations.

    Examples:
        >>> result = await service.apply_delivery({"over": 4, "ball": 1, "runs": 1})
        >>> result.success, result.data.state.overs
        (True, '4.1')

        >>> result = await service.apply_delivery({"over": 0, "ball": 9, "runs": 1})
        >>> result.error.code
        'VALIDATION_ERROR'
    """

    def __init__(
        self,
        store: EventStore,
        aggregator: Aggregator,
        undo_redo: RangeUndoRedo,
        notifier: ChangeNotifier,
        locks: MatchLocks | None = None,
        log_level: str = "INFO",
        history_limit: int = 20,
        recent_limit: int = 20,
    ):
        """Initialize the service.

        Args:
            store: Versioned delivery store.
            aggregator: Score replay.
            undo_redo: Range undo and redo engine.
            notifier: Publisher of score updates.
            locks: Per-match locks, shared with anything else that mutates.
            log_level: String log level for successful mutations (e.g.
                "INFO", "DEBUG"). Case-insensitive.
            history_limit: Default number of undo operations returned by history().
            recent_limit: Default number of records returned by recent_events().
        """
        self.store = store
        self.aggregator = aggregator
        self.undo_redo = undo_redo
        self.notifier = notifier
        self.locks = locks or MatchLocks()
        self.level = getattr(logging, log_level.upper())
        self.history_limit = history_limit
        self.recent_limit = recent_limit

    async def _guard(self, action: str, call: Awaitable[T]) -> OperationResult[T]:
        try:
            return OperationResult.ok(await call)
        except REJECTIONS as e:
            LOGGER.info(f"Rejected {action}: {e}", extra={"code": e.code})
            return OperationResult.fail(e)
        except ScorekeeperError as e:
            LOGGER.warning(f"Failed {action}: {e}", extra={"code": e.code})
            return OperationResult.fail(e)

    # Mutations

    async def apply_delivery(
        self, intent: DeliveryIntent | Mapping[str, Any]
    ) -> OperationResult[DeliveryApplied]:
        """Record a delivery, or correct it if its key already exists."""
        return await self._guard("delivery", self._apply(intent))

    async def correct_delivery(
        self, intent: DeliveryIntent | Mapping[str, Any], reason: str | None = None
    ) -> OperationResult[CorrectionApplied]:
        """Record a correction and report what it replaced.

        Correcting a key that was never recorded is accepted and written as
        version 1, with ``original`` left empty.
        """
        return await self._guard("correction", self._correct(intent, reason))

    async def undo_range(
        self,
        match_id: str,
        from_key: str,
        to_key: str,
        undone_by: str = DEFAULT_ENTERED_BY,
        reason: str = "",
    ) -> OperationResult[UndoOutcome]:
        return await self._guard(
            "undo", self._undo(match_id, from_key, to_key, undone_by or DEFAULT_ENTERED_BY, reason)
        )

    async def redo(
        self, operation_id: str, redone_by: str = DEFAULT_ENTERED_BY
    ) -> OperationResult[RedoOutcome]:
        return await self._guard("redo", self._redo(operation_id, redone_by or DEFAULT_ENTERED_BY))

    async def _apply(self, intent: DeliveryIntent | Mapping[str, Any]) -> DeliveryApplied:
        if not isinstance(intent, DeliveryIntent):
            intent = DeliveryIntent.parse(intent)

        async with self.locks.hold(intent.match_id):
            applied = await self.store.apply(intent)
            state = await self.aggregator.compute(intent.match_id)
            notified = await self.notifier.publish(
                intent.match_id,
                state,
                "correction" if applied.is_correction else "delivery",
                triggering_event=applied.record,
            )

        LOGGER.log(
            self.level,
            "Applied delivery",
            extra={
                "match_id": intent.match_id,
                "key": intent.key,
                "version": applied.record.version,
                "is_correction": applied.is_correction,
            },
        )
        return DeliveryApplied(
            record=applied.record,
            is_correction=applied.is_correction,
            state=state,
            notified=notified,
        )

    async def _correct(
        self, intent: DeliveryIntent | Mapping[str, Any], reason: str | None
    ) -> CorrectionApplied:
        applied = await self._apply(intent)
        record = applied.record

        original = None
        if applied.is_correction and record.previous_snapshot is not None:
            original = record.previous_snapshot.model_copy(update={"version": record.version - 1})

        return CorrectionApplied(
            record=record,
            is_correction=applied.is_correction,
            state=applied.state,
            notified=applied.notified,
            correction=CorrectionInfo(
                original=original, reason=reason or DEFAULT_CORRECTION_REASON
            ),
        )

    async def _undo(
        self, match_id: str, from_key: str, to_key: str, undone_by: str, reason: str
    ) -> UndoOutcome:
        async with self.locks.hold(match_id):
            try:
                outcome = await self.undo_redo.undo_range(
                    match_id, from_key, to_key, undone_by, reason
                )
            except PartialUndoError as e:
                await self._publish_partial(match_id, "undo", e.operation_id)
                raise
            outcome.notified = await self.notifier.publish(
                match_id,
                outcome.state,
                "undo",
                operation_id=outcome.operation.operation_id,
            )

        LOGGER.log(
            self.level,
            "Undid range",
            extra={
                "match_id": match_id,
                "operation_id": outcome.operation.operation_id,
                "range": str(outcome.operation.range),
            },
        )
        return outcome

    async def _redo(self, operation_id: str, redone_by: str) -> RedoOutcome:
        operation = await self.undo_redo.operations.find_by_id(operation_id)
        if operation is None:
            raise NotFoundError(operation_id)

        async with self.locks.hold(operation.match_id):
            try:
                outcome = await self.undo_redo.redo(operation_id, redone_by)
            except PartialRedoError:
                await self._publish_partial(operation.match_id, "redo", operation_id)
                raise
            outcome.notified = await self.notifier.publish(
                operation.match_id,
                outcome.state,
                "redo",
                operation_id=operation_id,
            )

        LOGGER.log(
            self.level,
            "Redid operation",
            extra={"match_id": operation.match_id, "operation_id": operation_id},
        )
        return outcome

    async def _publish_partial(
        self, match_id: str, trigger: Literal["undo", "redo"], operation_id: str | None
    ) -> None:
        """Publish the score after an undo or redo that stopped part way.

        Some records were already rewritten, so subscribers must see the new
        total. A failure to recompute is logged and leaves the partial error
        to propagate.
        """
        try:
            state = await self.aggregator.compute(match_id)
        except ScorekeeperError:
            LOGGER.exception(
                f"Failed to recompute score after partial {trigger}",
                extra={"match_id": match_id, "operation_id": operation_id},
            )
            return
        await self.notifier.publish(match_id, state, trigger, operation_id=operation_id)

    # Reads

    async def score(self, match_id: str) -> OperationResult[AggregateState]:
        return await self._guard("score", self.aggregator.compute(match_id))

    async def detailed_stats(self, match_id: str) -> OperationResult[DetailedStats]:
        return await self._guard("detailed stats", self.aggregator.detailed_stats(match_id))

    async def progression(self, match_id: str) -> OperationResult[list[ProgressionPoint]]:
        return await self._guard("progression", self.aggregator.progression(match_id))

    async def preview(
        self, match_id: str, from_key: str, to_key: str
    ) -> OperationResult[RangePreview]:
        return await self._guard("preview", self.undo_redo.preview(match_id, from_key, to_key))

    async def history(
        self, match_id: str, limit: int | None = None
    ) -> OperationResult[list[UndoOperationSummary]]:
        return await self._guard("history", self._history(match_id, limit))

    async def _history(self, match_id: str, limit: int | None) -> list[UndoOperationSummary]:
        return await self.undo_redo.history(match_id, self._limit(limit, self.history_limit))

    async def active_events(self, match_id: str) -> OperationResult[list[DeliveryRecord]]:
        """Counted deliveries only, matching what the score replays."""
        return await self._guard("active events", self.undo_redo.active_non_tombstoned(match_id))

    async def recent_events(
        self, match_id: str, limit: int | None = None
    ) -> OperationResult[list[DeliveryRecord]]:
        return await self._guard("recent events", self._recent_events(match_id, limit))

    async def _recent_events(self, match_id: str, limit: int | None) -> list[DeliveryRecord]:
        return await self.store.recent_by_timestamp(
            match_id, self._limit(limit, self.recent_limit)
        )

    @staticmethod
    def _limit(limit: int | None, default: int) -> int:
        if limit is None:
            return default
        if limit < 1:
            raise ValidationError([FieldViolation("limit", "must be at least 1", limit)])
        return limit

    async def all_versions(self, match_id: str) -> OperationResult[list[DeliveryRecord]]:
        return await self._guard("all versions", self.store.all_versions(match_id))

    async def processing_stats(self, match_id: str) -> OperationResult[ProcessingStats]:
        return await self._guard("processing stats", self.store.processing_stats(match_id))

    async def sequence_check(self, match_id: str) -> OperationResult[SequenceCheck]:
        return await self._guard("sequence check", self._sequence_check(match_id))

    async def _sequence_check(self, match_id: str) -> SequenceCheck:
        active = await self.aggregator.active_non_tombstoned(match_id)
        issues = await self.aggregator.sequence_issues(match_id)
        return SequenceCheck(match_id=match_id, total_events=len(active), issues=issues)
