"""Tests for delivery records, intents and key arithmetic."""

from datetime import datetime, timezone

import pydantic
import pytest

from scorekeeper.domain import (
    DEFAULT_MATCH_ID,
    DeliveryIntent,
    DeliveryRecord,
    DeliverySummary,
    PreviousSnapshot,
    RecordKind,
    ValidationError,
    key_ordinal,
    key_violations,
    make_key,
    ordinal,
    parse_key,
)

PERSISTED_FIELDS = {
    "key",
    "matchId",
    "over",
    "ball",
    "runs",
    "wicket",
    "timestamp",
    "kind",
    "version",
    "previousSnapshot",
    "enteredBy",
}


def test_make_key():
    assert make_key(4, 2) == "4.2"


def test_ordinal_orders_across_overs():
    assert ordinal(1, 6) < ordinal(2, 1)
    assert ordinal(4, 2) == 42


@pytest.mark.parametrize("ball", [0, 7, 10])
def test_ordinal_rejects_ball_outside_one_to_six(ball):
    with pytest.raises(ValueError, match="ball must be between 1 and 6"):
        ordinal(3, ball)


def test_parse_key():
    assert parse_key("12.5") == (12, 5)
    assert key_ordinal("12.5") == 125


@pytest.mark.parametrize(
    "key", ["4", "4.2.1", "a.b", "4.", "", None, 4.2, "4.2\n", "\u0664.\u0662", " 4.2"]
)
def test_parse_key_rejects_malformed_keys(key):
    with pytest.raises(ValidationError) as exc_info:
        parse_key(key)
    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.violations[0].field == "key"


def test_key_violations_report_ball_and_over_bounds():
    violations = key_violations("fromKey", "0.7")

    assert [v.constraint for v in violations] == [
        "over must be at least 1",
        "ball must be between 1 and 6",
    ]
    assert all(v.field == "fromKey" for v in violations)


def test_key_violations_empty_for_valid_key():
    assert key_violations("toKey", "20.6") == []


def test_record_serializes_the_durable_field_names():
    record = DeliveryRecord(key="4.2", over=4, ball=2, runs=6)

    document = record.to_document()

    assert set(document) == PERSISTED_FIELDS
    assert document["matchId"] == DEFAULT_MATCH_ID
    assert document["kind"] == "new"
    assert document["enteredBy"] == "system"


def test_record_round_trips_through_a_document():
    record = DeliveryRecord(
        key="4.2",
        match_id="m",
        over=4,
        ball=2,
        runs=0,
        kind=RecordKind.CORRECTION,
        version=2,
        previous_snapshot=PreviousSnapshot(runs=6, wicket=False),
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    document = record.to_document()
    document["_id"] = "ignored"

    assert DeliveryRecord.from_document(document) == record


def test_previous_snapshot_document_omits_missing_lineage():
    correction = DeliveryRecord(
        key="4.2",
        over=4,
        ball=2,
        runs=0,
        kind=RecordKind.CORRECTION,
        version=2,
        previous_snapshot=PreviousSnapshot(runs=6, wicket=False),
    )
    tombstone = DeliveryRecord(
        key="4.2",
        over=4,
        ball=2,
        runs=0,
        kind=RecordKind.TOMBSTONED,
        version=3,
        previous_snapshot=correction.snapshot(with_lineage=True),
    )

    assert correction.to_document()["previousSnapshot"] == {"runs": 6, "wicket": False}
    assert tombstone.to_document()["previousSnapshot"] == {
        "runs": 0,
        "wicket": False,
        "kind": "correction",
        "version": 2,
    }


def test_record_rejects_key_that_does_not_match_position():
    with pytest.raises(pydantic.ValidationError, match="does not match"):
        DeliveryRecord(key="4.3", over=4, ball=2, runs=0)


@pytest.mark.parametrize(
    "kind", [RecordKind.CORRECTION, RecordKind.TOMBSTONED, RecordKind.RESTORED]
)
def test_non_new_records_require_previous_snapshot(kind):
    with pytest.raises(pydantic.ValidationError, match="previous snapshot"):
        DeliveryRecord(key="4.2", over=4, ball=2, runs=0, kind=kind, version=2)


def test_record_is_immutable():
    record = DeliveryRecord(key="1.1", over=1, ball=1, runs=1)
    with pytest.raises(pydantic.ValidationError):
        record.runs = 4


def test_snapshot_with_lineage_carries_kind_and_version():
    record = DeliveryRecord(
        key="1.1",
        over=1,
        ball=1,
        runs=3,
        wicket=True,
        kind=RecordKind.CORRECTION,
        version=2,
        previous_snapshot=PreviousSnapshot(runs=1, wicket=False),
    )

    assert record.snapshot() == PreviousSnapshot(runs=3, wicket=True)
    assert record.snapshot(with_lineage=True) == PreviousSnapshot(
        runs=3, wicket=True, kind=RecordKind.CORRECTION, version=2
    )


def test_summary_flags_corrections():
    record = DeliveryRecord(
        key="1.1",
        over=1,
        ball=1,
        runs=0,
        kind=RecordKind.CORRECTION,
        version=2,
        previous_snapshot=PreviousSnapshot(runs=6, wicket=False),
    )

    summary = DeliverySummary.from_record(record)

    assert summary.is_correction is True
    assert summary.previous_snapshot.runs == 6


def test_intent_parse_accepts_valid_input():
    intent = DeliveryIntent.parse({"over": 4, "ball": 2, "runs": 6, "wicket": False})

    assert intent.key == "4.2"
    assert intent.match_id == DEFAULT_MATCH_ID
    assert intent.entered_by == "system"


@pytest.mark.parametrize("blank", [None, ""])
def test_intent_blank_match_and_author_fall_back_to_defaults(blank):
    intent = DeliveryIntent.parse(
        {"over": 1, "ball": 1, "runs": 0, "match_id": blank, "entered_by": blank}
    )

    assert intent.match_id == DEFAULT_MATCH_ID
    assert intent.entered_by == "system"


def test_intent_parse_reports_every_violated_field():
    with pytest.raises(ValidationError) as exc_info:
        DeliveryIntent.parse({"over": 0, "ball": 7, "runs": 9, "wicket": False})

    fields = {v.field for v in exc_info.value.violations}
    assert fields == {"over", "ball", "runs"}
    details = exc_info.value.to_details()
    assert {v["value"] for v in details["violations"]} == {0, 7, 9}


def test_intent_parse_rejects_strings_for_numbers():
    with pytest.raises(ValidationError) as exc_info:
        DeliveryIntent.parse({"over": "4", "ball": 1, "runs": 1})

    assert [v.field for v in exc_info.value.violations] == ["over"]


def test_intent_parse_reports_missing_fields():
    with pytest.raises(ValidationError) as exc_info:
        DeliveryIntent.parse({"ball": 1})

    assert {v.field for v in exc_info.value.violations} == {"over", "runs"}
