"""Derived score shapes. None of these are ever persisted."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from .delivery import DeliverySummary
from .document import DocumentModel, utc_now

EMPTY_OVERS = "0.0"


class AggregateState(DocumentModel):
    """Current score of a match, replayed from its active deliveries.

    Safe to discard and rebuild at any time: it is a pure function of the
    active, non-tombstoned delivery set.
    """

    match_id: str
    total_runs: int = 0
    total_wickets: int = 0
    balls_faced: int = 0
    current_over: int = 0
    current_ball: int = 0
    overs: str = EMPTY_OVERS
    last_active_event: DeliverySummary | None = None
    computed_at: datetime = Field(default_factory=utc_now)

    def score(self) -> dict[str, object]:
        """The part of the state that replays must reproduce exactly.

        ``last_active_event`` is left out because a restored delivery is a new
        version of its key, with its own version number and timestamp.
        """
        return self.model_dump(exclude={"computed_at", "last_active_event"})


class OverSummary(DocumentModel):
    over: int
    runs: int = 0
    wickets: int = 0
    balls: int = 0
    keys: list[str] = Field(default_factory=list)


class Boundaries(DocumentModel):
    fours: int = 0
    sixes: int = 0
    total: int = 0
    boundary_runs: int = 0


class DetailedStats(DocumentModel):
    """Secondary statistics, replayed from the same input as the score."""

    match_id: str
    basic: AggregateState
    over_by_over: list[OverSummary] = Field(default_factory=list)
    boundaries: Boundaries = Field(default_factory=Boundaries)
    run_rate: float = 0.0
    dot_balls: int = 0
    computed_at: datetime = Field(default_factory=utc_now)


class ProgressionPoint(DocumentModel):
    """Cumulative score right after one delivery, for charts."""

    index: int
    key: str
    overs: str
    runs: int
    wickets: int
    delivery_runs: int
    delivery_wicket: bool
    timestamp: datetime


class SequenceIssue(DocumentModel):
    """A gap or inconsistency found in the active delivery sequence."""

    type: Literal["BALL_SEQUENCE_GAP", "NEW_OVER_INVALID_BALL", "OVER_SEQUENCE_GAP"]
    key: str
    message: str


class ProcessingStats(DocumentModel):
    """Audit counters over every stored version of a match."""

    match_id: str
    total_events: int
    total_versions: int
    total_corrections: int
    events_with_corrections: int
    corrections_by_key: dict[str, int] = Field(default_factory=dict)
    last_processed: datetime | None = None
