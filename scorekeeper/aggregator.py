"""Replays active deliveries into the score and its derived statistics."""

from collections.abc import Iterable

from .domain import (
    EMPTY_OVERS,
    AggregateState,
    Boundaries,
    DeliveryRecord,
    DeliverySummary,
    DetailedStats,
    OverSummary,
    ProgressionPoint,
    SequenceIssue,
    make_key,
)
from .store import EventStore

BALLS_PER_OVER = 6


def visible(records: Iterable[DeliveryRecord]) -> list[DeliveryRecord]:
    """Drop tombstoned records and order the rest by ``(over, ball)``.

    This is the only filter between the active record set and every score
    derived from it.
    """
    return sorted(
        (record for record in records if not record.is_tombstoned),
        key=lambda r: (r.over, r.ball),
    )


def fold(match_id: str, records: Iterable[DeliveryRecord]) -> AggregateState:
    """Replay records into an :class:`AggregateState`.

    The current position is the last record in ``(over, ball)`` order, never
    the most recently written one.
    """
    state = AggregateState(match_id=match_id)
    last: DeliveryRecord | None = None
    for record in visible(records):
        state.total_runs += record.runs
        state.total_wickets += int(record.wicket)
        state.balls_faced += 1
        last = record

    if last is not None:
        state.current_over = last.over
        state.current_ball = last.ball
        state.overs = make_key(last.over, last.ball)
        state.last_active_event = DeliverySummary.from_record(last)
    else:
        state.overs = EMPTY_OVERS
    return state


def over_by_over(records: list[DeliveryRecord]) -> list[OverSummary]:
    overs: dict[int, OverSummary] = {}
    for record in records:
        summary = overs.setdefault(record.over, OverSummary(over=record.over))
        summary.runs += record.runs
        summary.wickets += int(record.wicket)
        summary.balls += 1
        summary.keys.append(record.key)
    return [overs[over] for over in sorted(overs)]


def boundaries(records: list[DeliveryRecord]) -> Boundaries:
    fours = sum(1 for r in records if r.runs == 4)
    sixes = sum(1 for r in records if r.runs == 6)
    return Boundaries(
        fours=fours, sixes=sixes, total=fours + sixes, boundary_runs=fours * 4 + sixes * 6
    )


def run_rate(runs: int, balls: int) -> float:
    """Runs per six-ball over, 0 when nothing has been bowled."""
    if balls == 0:
        return 0.0
    return runs / (balls / BALLS_PER_OVER)


class Aggregator:
    """Computes the score of a match by full replay.

    There is no cached or incremental state: each call reads the active
    records from the store and folds them again, so any sequence of
    corrections, undos and redos always yields the right score.

    Example:
        >>> aggregator = Aggregator(store)
        >>> state = await aggregator.compute("default")
        >>> state.overs
        '5.1'
    """

    __slots__ = ("store",)

    def __init__(self, store: EventStore):
        self.store = store

    async def active_non_tombstoned(self, match_id: str) -> list[DeliveryRecord]:
        """Return exactly the records that count toward the score."""
        return visible(await self.store.active_events(match_id))

    async def compute(self, match_id: str) -> AggregateState:
        """Replay the current score of a match.

        Raises:
            StorageError: If the active records cannot be read.
        """
        return fold(match_id, await self.store.active_events(match_id))

    async def detailed_stats(self, match_id: str) -> DetailedStats:
        """Compute the score plus over-by-over, boundary and rate figures."""
        records = await self.active_non_tombstoned(match_id)
        basic = fold(match_id, records)
        return DetailedStats(
            match_id=match_id,
            basic=basic,
            over_by_over=over_by_over(records),
            boundaries=boundaries(records),
            run_rate=run_rate(basic.total_runs, basic.balls_faced),
            dot_balls=sum(1 for r in records if r.runs == 0 and not r.wicket),
        )

    async def progression(self, match_id: str) -> list[ProgressionPoint]:
        """Return the cumulative score after each counted delivery."""
        points = []
        runs = wickets = 0
        for index, record in enumerate(await self.active_non_tombstoned(match_id), start=1):
            runs += record.runs
            wickets += int(record.wicket)
            points.append(
                ProgressionPoint(
                    index=index,
                    key=record.key,
                    overs=make_key(record.over, record.ball),
                    runs=runs,
                    wickets=wickets,
                    delivery_runs=record.runs,
                    delivery_wicket=record.wicket,
                    timestamp=record.timestamp,
                )
            )
        return points

    async def sequence_issues(self, match_id: str) -> list[SequenceIssue]:
        """Find gaps in the counted delivery sequence.

        Reports a ball that does not follow its predecessor within an over, a
        new over that does not start at ball 1, and skipped overs.
        """
        records = await self.active_non_tombstoned(match_id)
        issues = []
        for previous, record in zip(records, records[1:]):
            if record.over == previous.over:
                if record.ball != previous.ball + 1:
                    issues.append(
                        SequenceIssue(
                            type="BALL_SEQUENCE_GAP",
                            key=record.key,
                            message=f"Ball sequence gap: {previous.key} -> {record.key}",
                        )
                    )
            elif record.over == previous.over + 1:
                if record.ball != 1:
                    issues.append(
                        SequenceIssue(
                            type="NEW_OVER_INVALID_BALL",
                            key=record.key,
                            message=f"New over should start with ball 1, got ball {record.ball}",
                        )
                    )
            else:
                issues.append(
                    SequenceIssue(
                        type="OVER_SEQUENCE_GAP",
                        key=record.key,
                        message=f"Over sequence gap: {previous.over} -> {record.over}",
                    )
                )
        return issues
