"""Tests for Scorekeeper assembly and lifecycle."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from scorekeeper import Scorekeeper, ScorekeeperSettings
from scorekeeper.config import Storages
from scorekeeper.notifier import InMemoryNotifier
from scorekeeper.storage import InMemoryDeliveryStorage, InMemoryUndoOperationStorage


class LifecycleNotifier(InMemoryNotifier):
    def __init__(self, calls):
        super().__init__()
        self.calls = calls

    async def on_startup(self):
        self.calls.append("notifier:start")

    async def on_shutdown(self):
        self.calls.append("notifier:stop")


def component(name, calls):
    mock = MagicMock()
    mock.on_startup = AsyncMock(side_effect=lambda: calls.append(f"{name}:start"))
    mock.on_shutdown = AsyncMock(side_effect=lambda: calls.append(f"{name}:stop"))
    return mock


@pytest.mark.asyncio
async def test_in_memory_scorekeeper_end_to_end():
    async with Scorekeeper(ScorekeeperSettings()) as scorekeeper:
        subscription = await scorekeeper.notifier.subscribe("default")
        await scorekeeper.service.apply_delivery({"over": 1, "ball": 1, "runs": 4})
        result = await scorekeeper.service.score("default")

    assert result.unwrap().total_runs == 4
    assert await subscription.depth() == 1


def test_settings_flow_into_components():
    settings = ScorekeeperSettings(max_write_attempts=5, history_limit=3, log_level="DEBUG")

    scorekeeper = Scorekeeper(settings)

    assert scorekeeper.store.max_attempts == 5
    assert scorekeeper.service.history_limit == 3
    assert scorekeeper.service.locks is scorekeeper.locks


@pytest.mark.asyncio
async def test_lifecycle_order():
    calls = []
    storages = Storages(
        deliveries=InMemoryDeliveryStorage(),
        operations=InMemoryUndoOperationStorage(),
        lifecycle=[component("mongo", calls), component("deliveries", calls)],
    )
    scorekeeper = Scorekeeper(notifier=LifecycleNotifier(calls), storages=storages)

    await scorekeeper.open()
    await scorekeeper.close()

    assert calls == [
        "mongo:start",
        "deliveries:start",
        "notifier:start",
        "notifier:stop",
        "deliveries:stop",
        "mongo:stop",
    ]


def test_plain_notifier_is_not_a_lifecycle_component():
    scorekeeper = Scorekeeper()

    assert scorekeeper.lifecycle == []
