"""Application settings and storage selection."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .integrations.mongodb import (
    MongoConfiguration,
    MongoDeliveryStorage,
    MongoUndoOperationStorage,
)
from .storage import (
    DeliveryStorage,
    InMemoryDeliveryStorage,
    InMemoryUndoOperationStorage,
    TimeoutDeliveryStorage,
    TimeoutUndoOperationStorage,
    UndoOperationStorage,
)

if TYPE_CHECKING:
    from .application import HasLifecycle


class ScorekeeperSettings(BaseSettings):
    """Settings for a scorekeeper process.

    All settings can be configured via environment variables with the
    SCOREKEEPER_ prefix. For example:
    - SCOREKEEPER_STORAGE_BACKEND=mongodb
    - SCOREKEEPER_STORAGE_TIMEOUT_SECONDS=2.5
    - SCOREKEEPER_LOG_LEVEL=DEBUG

    MongoDB connection settings live in
    :class:`~scorekeeper.integrations.mongodb.MongoConfiguration` under the
    SCOREKEEPER_MONGO_ prefix.

    Attributes:
        storage_backend: Which storage implementation to build.
        storage_timeout_seconds: Deadline for every storage call.
        max_write_attempts: Attempts per delivery write when versions race.
        retry_delay_seconds: Delay between those attempts.
        log_level: Level at which successful mutations are logged.
        history_limit: Default number of undo operations listed.
        recent_limit: Default number of recent deliveries listed.
    """

    storage_backend: Literal["memory", "mongodb"] = "memory"
    storage_timeout_seconds: float = Field(default=5.0, gt=0)
    max_write_attempts: int = Field(default=3, gt=0)
    retry_delay_seconds: float = Field(default=0.05, ge=0)
    log_level: str = "INFO"
    history_limit: int = Field(default=20, gt=0)
    recent_limit: int = Field(default=20, gt=0)

    model_config = SettingsConfigDict(env_prefix="SCOREKEEPER_")


@dataclass
class Storages:
    """The storage pair a scorekeeper runs on.

    ``lifecycle`` lists the components that must be started and stopped with
    the application, in startup order.
    """

    deliveries: DeliveryStorage
    operations: UndoOperationStorage
    lifecycle: list["HasLifecycle"] = field(default_factory=list)


def build_storages(
    settings: ScorekeeperSettings, mongo: MongoConfiguration | None = None
) -> Storages:
    """Build the configured storage backend, with every call time-bounded.

    The backend is chosen once, here, from ``settings.storage_backend``.

    Args:
        settings: Process settings.
        mongo: MongoDB settings; read from the environment when omitted.
    """
    if settings.storage_backend == "mongodb":
        mongo = mongo or MongoConfiguration()
        deliveries: DeliveryStorage = MongoDeliveryStorage(mongo)
        operations: UndoOperationStorage = MongoUndoOperationStorage(mongo)
        lifecycle: list[HasLifecycle] = [mongo, deliveries, operations]
    else:
        deliveries = InMemoryDeliveryStorage()
        operations = InMemoryUndoOperationStorage()
        lifecycle = []

    return Storages(
        deliveries=TimeoutDeliveryStorage(deliveries, settings.storage_timeout_seconds),
        operations=TimeoutUndoOperationStorage(operations, settings.storage_timeout_seconds),
        lifecycle=lifecycle,
    )
