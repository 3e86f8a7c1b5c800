"""Tests for range undo, redo and the operation log."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from scorekeeper.domain import (
    AlreadyRedoneError,
    EmptyRangeError,
    NotFoundError,
    PartialRedoError,
    PartialUndoError,
    RecordKind,
    StorageError,
    ValidationError,
)
from scorekeeper.undo import validate_range


def fail_on(deliveries, key, kind):
    """Make ``deliveries.insert`` fail for one key written with the given kind."""
    insert = deliveries.insert

    async def failing(record):
        if record.key == key and record.kind == kind:
            raise StorageError("insert", "connection reset")
        await insert(record)

    deliveries.insert = failing


def test_validate_range_returns_ordinals():
    assert validate_range("1.2", "1.5") == (12, 15)
    assert validate_range("3.4", "3.4") == (34, 34)


@pytest.mark.parametrize(
    "from_key, to_key, field",
    [
        ("1.5", "1.2", "range"),
        ("2.1", "1.6", "range"),
        ("1.7", "2.1", "fromKey"),
        ("1.1", "abc", "toKey"),
        ("0.1", "1.1", "fromKey"),
    ],
)
def test_validate_range_rejects_bad_ranges(from_key, to_key, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_range(from_key, to_key)

    assert exc_info.value.code == "INVALID_RANGE"
    assert exc_info.value.violations[0].field == field


@pytest.mark.asyncio
async def test_preview_reports_impact_without_writing(undo_redo, seed, first_over, store, match_id):
    await seed(first_over)
    before = await store.all_versions(match_id)

    preview = await undo_redo.preview(match_id, "1.2", "1.5")

    assert [e.key for e in preview.events] == ["1.2", "1.3", "1.4", "1.5"]
    assert preview.runs_impact == 12
    assert preview.wickets_impact == 0
    assert await store.all_versions(match_id) == before


@pytest.mark.asyncio
async def test_undo_range_tombstones_and_recomputes(
    undo_redo, seed, first_over, store, operations, match_id
):
    await seed(first_over)

    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5", "umpire", "wrong batter")

    assert outcome.state.total_runs == 2
    assert outcome.state.overs == "1.6"
    assert outcome.operation.keys == ["1.2", "1.3", "1.4", "1.5"]
    assert outcome.operation.reason == "wrong batter"
    assert [e.runs for e in outcome.operation.events_affected] == [4, 0, 2, 6]

    latest = await store.latest(match_id, "1.3")
    assert latest.kind == RecordKind.TOMBSTONED
    assert latest.entered_by == "umpire"
    assert (await operations.find_by_id(outcome.operation.operation_id)) is not None


@pytest.mark.asyncio
async def test_undo_then_redo_restores_the_score(undo_redo, aggregator, seed, first_over, match_id):
    await seed(first_over)
    before = await aggregator.compute(match_id)

    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5", "umpire")
    redone = await undo_redo.redo(outcome.operation.operation_id, "umpire")

    assert redone.state.score() == before.score()
    assert [r.key for r in redone.restored] == ["1.2", "1.3", "1.4", "1.5"]
    assert all(r.kind == RecordKind.RESTORED for r in redone.restored)
    assert redone.operation.redone_by == "umpire"
    assert redone.operation.can_redo is False


@pytest.mark.asyncio
async def test_undo_uses_position_order_not_arrival(undo_redo, seed, match_id):
    await seed([(4, 1, 1, False), (4, 3, 2, False), (4, 2, 3, False)])

    outcome = await undo_redo.undo_range(match_id, "4.2", "4.2")

    assert outcome.operation.keys == ["4.2"]
    assert outcome.state.total_runs == 3


@pytest.mark.asyncio
async def test_redo_only_touches_captured_keys(
    undo_redo, seed, first_over, store, make_intent, match_id
):
    await seed(first_over)
    outcome = await undo_redo.undo_range(match_id, "1.2", "1.3")
    await store.apply(make_intent(1, 4, 0))

    redone = await undo_redo.redo(outcome.operation.operation_id)

    assert redone.state.total_runs == 1 + 4 + 0 + 0 + 6 + 1
    assert (await store.latest(match_id, "1.4")).kind == RecordKind.CORRECTION


@pytest.mark.asyncio
async def test_redo_succeeds_only_once(undo_redo, seed, first_over, match_id):
    await seed(first_over)
    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5")
    operation_id = outcome.operation.operation_id

    await undo_redo.redo(operation_id)

    with pytest.raises(AlreadyRedoneError) as exc_info:
        await undo_redo.redo(operation_id)
    assert exc_info.value.redone_at is not None


@pytest.mark.asyncio
async def test_concurrent_redos_restore_once(undo_redo, seed, first_over, store, match_id):
    await seed(first_over)
    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5")
    operation_id = outcome.operation.operation_id

    results = await asyncio.gather(
        undo_redo.redo(operation_id, "a"),
        undo_redo.redo(operation_id, "b"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, AlreadyRedoneError)) == 1
    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    # new, tombstoned, restored
    assert [r.version for r in await store.all_versions(match_id) if r.key == "1.2"] == [1, 2, 3]


@pytest.mark.asyncio
async def test_redo_lost_claim_is_already_redone(undo_redo, seed, first_over, operations, match_id):
    await seed(first_over)
    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5")
    operations.mark_redone = AsyncMock(return_value=False)

    with pytest.raises(AlreadyRedoneError):
        await undo_redo.redo(outcome.operation.operation_id)


@pytest.mark.asyncio
async def test_redo_unknown_operation(undo_redo):
    with pytest.raises(NotFoundError) as exc_info:
        await undo_redo.redo("01HXNOTANOPERATION")

    assert exc_info.value.to_details() == {"operationId": "01HXNOTANOPERATION"}


@pytest.mark.asyncio
async def test_empty_range(undo_redo, seed, first_over, match_id):
    await seed(first_over)

    with pytest.raises(EmptyRangeError):
        await undo_redo.undo_range(match_id, "3.1", "3.6")


@pytest.mark.asyncio
async def test_already_undone_range_is_empty(undo_redo, seed, first_over, match_id):
    await seed(first_over)
    await undo_redo.undo_range(match_id, "1.2", "1.5")

    with pytest.raises(EmptyRangeError):
        await undo_redo.undo_range(match_id, "1.3", "1.4")


@pytest.mark.asyncio
async def test_invalid_range_writes_nothing(
    undo_redo, seed, first_over, store, operations, match_id
):
    await seed(first_over)

    with pytest.raises(ValidationError):
        await undo_redo.undo_range(match_id, "1.5", "1.2")

    assert len(await store.all_versions(match_id)) == 6
    assert await operations.find_recent(match_id, 10) == []


@pytest.mark.asyncio
async def test_partial_undo_reports_both_sides(
    undo_redo, aggregator, seed, first_over, deliveries, operations, match_id
):
    await seed(first_over)
    fail_on(deliveries, "1.4", RecordKind.TOMBSTONED)

    with pytest.raises(PartialUndoError) as exc_info:
        await undo_redo.undo_range(match_id, "1.2", "1.5")

    error = exc_info.value
    assert error.tombstoned_keys == ["1.2", "1.3"]
    assert error.failed_keys == ["1.4", "1.5"]
    assert error.operation_id is not None
    recorded = await operations.find_by_id(error.operation_id)
    assert recorded.keys == ["1.2", "1.3"]
    assert (await aggregator.compute(match_id)).total_runs == 10


@pytest.mark.asyncio
async def test_first_tombstone_failure_changes_nothing(
    undo_redo, seed, first_over, deliveries, operations, match_id
):
    await seed(first_over)
    fail_on(deliveries, "1.2", RecordKind.TOMBSTONED)

    with pytest.raises(StorageError):
        await undo_redo.undo_range(match_id, "1.2", "1.5")

    assert await operations.find_recent(match_id, 10) == []


@pytest.mark.asyncio
async def test_operation_log_failure_is_partial(undo_redo, seed, first_over, operations, match_id):
    await seed(first_over)
    operations.insert = AsyncMock(side_effect=StorageError("insert", "disk full"))

    with pytest.raises(PartialUndoError) as exc_info:
        await undo_redo.undo_range(match_id, "1.2", "1.5")

    assert exc_info.value.operation_id is None
    assert exc_info.value.tombstoned_keys == ["1.2", "1.3", "1.4", "1.5"]
    assert exc_info.value.failed_keys == []


@pytest.mark.asyncio
async def test_partial_redo(undo_redo, seed, first_over, deliveries, match_id):
    await seed(first_over)
    outcome = await undo_redo.undo_range(match_id, "1.2", "1.5")
    fail_on(deliveries, "1.4", RecordKind.RESTORED)

    with pytest.raises(PartialRedoError) as exc_info:
        await undo_redo.redo(outcome.operation.operation_id)

    assert exc_info.value.restored_keys == ["1.2", "1.3"]
    assert exc_info.value.failed_keys == ["1.4", "1.5"]
    with pytest.raises(AlreadyRedoneError):
        await undo_redo.redo(outcome.operation.operation_id)


@pytest.mark.asyncio
async def test_history_newest_first_and_limited(undo_redo, seed, first_over, match_id):
    await seed(first_over)
    first = await undo_redo.undo_range(match_id, "1.1", "1.1", reason="one")
    await asyncio.sleep(0.002)
    second = await undo_redo.undo_range(match_id, "1.2", "1.3", reason="two")
    await undo_redo.redo(first.operation.operation_id)

    history = await undo_redo.history(match_id, 10)

    assert [h.operation_id for h in history] == [
        second.operation.operation_id,
        first.operation.operation_id,
    ]
    assert history[0].can_redo is True
    assert history[0].events_count == 2
    assert history[1].can_redo is False

    latest = await undo_redo.history(match_id, 1)
    assert [h.operation_id for h in latest] == [second.operation.operation_id]
