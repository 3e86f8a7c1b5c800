"""Pytest fixtures for MongoDB integration tests."""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from scorekeeper.integrations.mongodb import (
    MongoConfiguration,
    MongoDeliveryStorage,
    MongoUndoOperationStorage,
)

# Assumes a MongoDB container is running locally on port 27017
LOCAL_MONGO_URI = "mongodb://localhost:27017"


@pytest_asyncio.fixture
async def mongo_config(request: pytest.FixtureRequest) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration on a fresh database named after the test."""
    config = MongoConfiguration(
        uri=LOCAL_MONGO_URI,
        database=f"test_{request.node.name}"[:63],
        server_selection_timeout_ms=2000,
    )
    await config.client.drop_database(config.database)
    try:
        yield config
    finally:
        await config.on_shutdown()


@pytest_asyncio.fixture
async def mongo_deliveries(mongo_config: MongoConfiguration) -> MongoDeliveryStorage:
    storage = MongoDeliveryStorage(mongo_config)
    await storage.initialize_schema()
    return storage


@pytest_asyncio.fixture
async def mongo_operations(mongo_config: MongoConfiguration) -> MongoUndoOperationStorage:
    storage = MongoUndoOperationStorage(mongo_config)
    await storage.initialize_schema()
    return storage
