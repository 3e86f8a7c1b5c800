"""Delivery records, intents and the over.ball key arithmetic."""

import re
from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from typing import Any

import pydantic
from pydantic import (
    Field,
    SerializerFunctionWrapHandler,
    StrictBool,
    StrictInt,
    field_validator,
    model_serializer,
    model_validator,
)

from .document import DocumentModel, utc_now
from .exceptions import FieldViolation, ValidationError

DEFAULT_MATCH_ID = "default"
DEFAULT_ENTERED_BY = "system"

MIN_BALL = 1
MAX_BALL = 6
MAX_RUNS = 6

# Ordinals are over * 10 + ball. Balls never exceed 6, so two different
# keys can never share an ordinal.
ORDINAL_BASE = 10

KEY_PATTERN = re.compile(r"[0-9]+\.[0-9]+")


class RecordKind(StrEnum):
    """How a version of a delivery came to exist."""

    NEW = "new"
    CORRECTION = "correction"
    TOMBSTONED = "tombstoned"
    RESTORED = "restored"


def make_key(over: int, ball: int) -> str:
    """Build the ``"{over}.{ball}"`` identity of a delivery."""
    return f"{over}.{ball}"


def ordinal(over: int, ball: int) -> int:
    """Map a delivery position onto a single comparable integer.

    Raises:
        ValueError: If ``ball`` is outside 1..6, where the mapping would no
            longer be collision free.
    """
    if not MIN_BALL <= ball <= MAX_BALL:
        raise ValueError(f"ball must be between {MIN_BALL} and {MAX_BALL}, got {ball}")
    return over * ORDINAL_BASE + ball


def key_violations(field: str, key: Any) -> list[FieldViolation]:
    """Check a range key such as ``"4.2"`` and return every violated constraint."""
    if not isinstance(key, str) or not KEY_PATTERN.fullmatch(key):
        return [FieldViolation(field, 'must match the "over.ball" format', key)]

    over_text, ball_text = key.split(".")
    violations = []
    if int(over_text) < 1:
        violations.append(FieldViolation(field, "over must be at least 1", key))
    if not MIN_BALL <= int(ball_text) <= MAX_BALL:
        violations.append(
            FieldViolation(field, f"ball must be between {MIN_BALL} and {MAX_BALL}", key)
        )
    return violations


def parse_key(key: str) -> tuple[int, int]:
    """Split a validated key into ``(over, ball)``.

    Raises:
        ValidationError: If the key is malformed or the ball is out of range.
    """
    violations = key_violations("key", key)
    if violations:
        raise ValidationError(violations)
    over_text, ball_text = key.split(".")
    return int(over_text), int(ball_text)


def key_ordinal(key: str) -> int:
    return ordinal(*parse_key(key))


class PreviousSnapshot(DocumentModel):
    """State of the prior active version, captured when a new version is written.

    ``kind`` and ``version`` are only captured for tombstones and restores.
    """

    runs: int
    wicket: bool
    kind: RecordKind | None = None
    version: int | None = None

    @model_serializer(mode="wrap")
    def _omit_missing_lineage(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return {name: value for name, value in data.items() if value is not None}


class DeliveryRecord(DocumentModel):
    """One immutable, persisted version of one logical delivery.

    Many records share a ``(match_id, key)``; the one with the highest
    ``version`` is the active record. Records are never updated or deleted.

    Attributes:
        key: Derived ``"{over}.{ball}"`` identity.
        match_id: Partition identifier.
        over: Over number, at least 1.
        ball: Ball within the over, 1 to 6.
        runs: Runs scored off the delivery, 0 to 6.
        wicket: Whether a wicket fell.
        timestamp: When this version was written (audit only).
        kind: How this version came to exist.
        version: Position of this version for its key (1-indexed, no gaps).
        previous_snapshot: Prior active state, required for every kind but new.
        entered_by: Free-text attribution.
    """

    model_config = {"frozen": True}

    key: str
    match_id: str = DEFAULT_MATCH_ID
    over: int = Field(ge=1)
    ball: int = Field(ge=MIN_BALL, le=MAX_BALL)
    runs: int = Field(ge=0, le=MAX_RUNS)
    wicket: bool = False
    timestamp: datetime = Field(default_factory=utc_now)
    kind: RecordKind = RecordKind.NEW
    version: int = Field(default=1, ge=1)
    previous_snapshot: PreviousSnapshot | None = None
    entered_by: str = DEFAULT_ENTERED_BY

    @model_validator(mode="after")
    def _check_consistency(self) -> "DeliveryRecord":
        if self.key != make_key(self.over, self.ball):
            raise ValueError(f"key {self.key!r} does not match over {self.over} ball {self.ball}")
        if self.kind != RecordKind.NEW and self.previous_snapshot is None:
            raise ValueError(f"{self.kind} records must carry a previous snapshot")
        return self

    @property
    def ordinal(self) -> int:
        return ordinal(self.over, self.ball)

    @property
    def is_tombstoned(self) -> bool:
        return self.kind == RecordKind.TOMBSTONED

    def snapshot(self, with_lineage: bool = False) -> PreviousSnapshot:
        """Capture this record as the previous snapshot of its successor."""
        if with_lineage:
            return PreviousSnapshot(
                runs=self.runs, wicket=self.wicket, kind=self.kind, version=self.version
            )
        return PreviousSnapshot(runs=self.runs, wicket=self.wicket)


class DeliverySummary(DocumentModel):
    """Compact view of a delivery version for score payloads and logs."""

    key: str
    over: int
    ball: int
    runs: int
    wicket: bool
    kind: RecordKind
    version: int
    timestamp: datetime
    is_correction: bool = False
    previous_snapshot: PreviousSnapshot | None = None

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> "DeliverySummary":
        return cls(
            key=record.key,
            over=record.over,
            ball=record.ball,
            runs=record.runs,
            wicket=record.wicket,
            kind=record.kind,
            version=record.version,
            timestamp=record.timestamp,
            is_correction=record.kind == RecordKind.CORRECTION,
            previous_snapshot=record.previous_snapshot,
        )


class DeliveryIntent(DocumentModel):
    """A request to record (or correct) the outcome of one delivery.

    Use :meth:`parse` on untrusted input: it reports every violated field in
    a single :class:`ValidationError`.
    """

    match_id: str = DEFAULT_MATCH_ID
    over: StrictInt = Field(gt=0)
    ball: StrictInt = Field(ge=MIN_BALL, le=MAX_BALL)
    runs: StrictInt = Field(ge=0, le=MAX_RUNS)
    wicket: StrictBool = False
    entered_by: str = DEFAULT_ENTERED_BY

    @field_validator("match_id", mode="before")
    @classmethod
    def _default_match(cls, value: Any) -> Any:
        return DEFAULT_MATCH_ID if value is None or value == "" else value

    @field_validator("entered_by", mode="before")
    @classmethod
    def _default_author(cls, value: Any) -> Any:
        return DEFAULT_ENTERED_BY if value is None or value == "" else value

    @property
    def key(self) -> str:
        return make_key(self.over, self.ball)

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "DeliveryIntent":
        """Validate raw input into an intent.

        Raises:
            ValidationError: With one violation per offending field.
        """
        try:
            return cls.model_validate(dict(data))
        except pydantic.ValidationError as e:
            raise ValidationError(
                [
                    FieldViolation(
                        field=".".join(str(part) for part in error["loc"]) or "intent",
                        constraint=error["msg"],
                        value=error.get("input"),
                    )
                    for error in e.errors()
                ]
            ) from None
