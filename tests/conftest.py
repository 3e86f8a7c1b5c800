"""Central test fixtures: in-memory storages and a fully wired core."""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import pytest

from scorekeeper.aggregator import Aggregator
from scorekeeper.domain import DeliveryIntent
from scorekeeper.locks import MatchLocks
from scorekeeper.notifier import ChangeNotifier, InMemoryNotifier
from scorekeeper.service import ScoreService
from scorekeeper.storage import InMemoryDeliveryStorage, InMemoryUndoOperationStorage
from scorekeeper.store import EventStore
from scorekeeper.undo import RangeUndoRedo

MATCH_ID = "match-1"

Sequence = Iterable[tuple[int, int, int, bool]]


def intent(
    over: int, ball: int, runs: int, wicket: bool = False, match_id: str = MATCH_ID, **kwargs: Any
) -> DeliveryIntent:
    return DeliveryIntent(
        match_id=match_id, over=over, ball=ball, runs=runs, wicket=wicket, **kwargs
    )


async def apply_all(store: EventStore, sequence: Sequence, match_id: str = MATCH_ID) -> None:
    for over, ball, runs, wicket in sequence:
        await store.apply(intent(over, ball, runs, wicket, match_id=match_id))


@pytest.fixture
def match_id() -> str:
    return MATCH_ID


@pytest.fixture
def deliveries() -> InMemoryDeliveryStorage:
    """Create an in-memory delivery storage."""
    return InMemoryDeliveryStorage()


@pytest.fixture
def operations() -> InMemoryUndoOperationStorage:
    """Create an in-memory undo operation storage."""
    return InMemoryUndoOperationStorage()


@pytest.fixture
def store(deliveries: InMemoryDeliveryStorage) -> EventStore:
    return EventStore(deliveries, max_attempts=3, retry_delay=0.0)


@pytest.fixture
def aggregator(store: EventStore) -> Aggregator:
    return Aggregator(store)


@pytest.fixture
def undo_redo(
    store: EventStore, operations: InMemoryUndoOperationStorage, aggregator: Aggregator
) -> RangeUndoRedo:
    return RangeUndoRedo(store, operations, aggregator)


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def service(
    store: EventStore,
    aggregator: Aggregator,
    undo_redo: RangeUndoRedo,
    notifier: InMemoryNotifier,
) -> ScoreService:
    """Create a service wired to the in-memory fixtures above."""
    return ScoreService(
        store,
        aggregator,
        undo_redo,
        ChangeNotifier(notifier),
        locks=MatchLocks(),
        log_level="INFO",
        history_limit=5,
        recent_limit=5,
    )


@pytest.fixture
def five_overs() -> list[tuple[int, int, int, bool]]:
    """Overs 4.1 to 5.1 with a six at 4.2 that gets corrected later: 14 runs, 1 wicket."""
    return [
        (4, 1, 1, False),
        (4, 2, 6, False),
        (4, 3, 0, False),
        (4, 4, 4, False),
        (4, 5, 2, False),
        (4, 6, 1, False),
        (5, 1, 0, True),
    ]


@pytest.fixture
def first_over() -> list[tuple[int, int, int, bool]]:
    """Runs 1, 4, 0, 2, 6, 1 across 1.1 to 1.6: 14 runs, 12 of them in 1.2-1.5."""
    return [
        (1, 1, 1, False),
        (1, 2, 4, False),
        (1, 3, 0, False),
        (1, 4, 2, False),
        (1, 5, 6, False),
        (1, 6, 1, False),
    ]


@pytest.fixture
def make_intent() -> Callable[..., DeliveryIntent]:
    """Build a DeliveryIntent for the default test match."""
    return intent


@pytest.fixture
def seed(store: EventStore) -> Callable[..., Awaitable[None]]:
    """Apply a sequence of (over, ball, runs, wicket) tuples through the store."""

    async def seed(sequence: Sequence, match_id: str = MATCH_ID) -> None:
        await apply_all(store, sequence, match_id)

    return seed
