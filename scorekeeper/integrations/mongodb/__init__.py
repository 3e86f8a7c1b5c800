"""MongoDB persistence for deliveries and undo operations.

Uses the async PyMongo driver. Delivery versions live in the ``events``
collection and the undo log in ``undoOperations``, both with camelCase
field names.

Usage:
    >>> from scorekeeper.integrations.mongodb import (
    ...     MongoConfiguration,
    ...     MongoDeliveryStorage,
    ...     MongoUndoOperationStorage,
    ... )
    >>>
    >>> config = MongoConfiguration(uri="mongodb://localhost:27017", database="cricket")
    >>> deliveries = MongoDeliveryStorage(config)
    >>> await deliveries.initialize_schema()
    >>> operations = MongoUndoOperationStorage(config)
    >>> await operations.initialize_schema()
"""

from .collection import IndexDirection, IndexedCollection, IndexSpec
from .config import MongoConfiguration
from .deliveries import MongoDeliveryStorage
from .operations import MongoUndoOperationStorage

__all__ = [
    "IndexDirection",
    "IndexSpec",
    "IndexedCollection",
    "MongoConfiguration",
    "MongoDeliveryStorage",
    "MongoUndoOperationStorage",
]
