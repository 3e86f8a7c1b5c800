"""Persistence interfaces for deliveries and undo operations.

This package provides:
- DeliveryStorage / UndoOperationStorage: abstract storage capabilities
- InMemory*: dictionary-backed implementations for tests and demos
- Timeout*: decorators that bound every storage call with a deadline

The MongoDB implementations live in ``scorekeeper.integrations.mongodb``.
"""

from .deliveries import DeliveryStorage, InMemoryDeliveryStorage
from .operations import InMemoryUndoOperationStorage, UndoOperationStorage
from .timeout import TimeoutDeliveryStorage, TimeoutUndoOperationStorage, bounded

__all__ = [
    "DeliveryStorage",
    "UndoOperationStorage",
    "InMemoryDeliveryStorage",
    "InMemoryUndoOperationStorage",
    "TimeoutDeliveryStorage",
    "TimeoutUndoOperationStorage",
    "bounded",
]
