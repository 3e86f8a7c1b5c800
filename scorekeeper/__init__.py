"""Scorekeeper - versioned cricket delivery tracking with range undo/redo.

This module provides the public API for recording deliveries, replaying the
score and retracting ranges of deliveries without deleting history.
"""

from .aggregator import Aggregator
from .application import HasLifecycle, Scorekeeper
from .config import ScorekeeperSettings, build_storages
from .domain import (
    AggregateState,
    DeliveryIntent,
    DeliveryRecord,
    OperationResult,
    RecordKind,
    UndoOperation,
)
from .locks import MatchLocks
from .notifier import ChangeNotifier, InMemoryNotifier, Notifier, ScoreUpdate
from .service import ScoreService
from .simulation import simulate_match
from .store import EventStore
from .undo import RangeUndoRedo

__all__ = [
    # Application
    "Scorekeeper",
    "ScorekeeperSettings",
    "HasLifecycle",
    "build_storages",
    # Core
    "EventStore",
    "Aggregator",
    "RangeUndoRedo",
    "ChangeNotifier",
    "ScoreService",
    "MatchLocks",
    # Notification
    "Notifier",
    "InMemoryNotifier",
    "ScoreUpdate",
    # Domain primitives
    "AggregateState",
    "DeliveryIntent",
    "DeliveryRecord",
    "OperationResult",
    "RecordKind",
    "UndoOperation",
    # Demo
    "simulate_match",
]
