"""Explicit assembly and lifecycle of a scorekeeper instance."""

import logging
from types import TracebackType
from typing import Protocol, runtime_checkable

from .aggregator import Aggregator
from .config import ScorekeeperSettings, Storages, build_storages
from .locks import MatchLocks
from .notifier import ChangeNotifier, InMemoryNotifier, Notifier
from .service import ScoreService
from .store import EventStore
from .undo import RangeUndoRedo

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class HasLifecycle(Protocol):
    async def on_startup(self) -> None:
        """Called when the scorekeeper is opened."""
        ...

    async def on_shutdown(self) -> None:
        """Called when the scorekeeper is closed."""
        ...


class Scorekeeper:
    """A fully wired scorekeeper: storages, core components and service.

    Nothing is global. Construct one per process (or per test), open it, and
    pass ``scorekeeper.service`` to whatever handles requests.

    Examples:
        In-memory, for tests and demos:

        >>> async with Scorekeeper() as scorekeeper:
        ...     await scorekeeper.service.apply_delivery({"over": 1, "ball": 1, "runs": 4})

        MongoDB, with a custom transport:

        >>> settings = ScorekeeperSettings(storage_backend="mongodb")
        >>> scorekeeper = Scorekeeper(settings, notifier=WebSocketNotifier(rooms))
        >>> await scorekeeper.open()
        >>> ...
        >>> await scorekeeper.close()
    """

    def __init__(
        self,
        settings: ScorekeeperSettings | None = None,
        notifier: Notifier | None = None,
        storages: Storages | None = None,
    ):
        """Assemble every component from settings.

        Args:
            settings: Process settings; read from the environment when omitted.
            notifier: Fan-out transport; an InMemoryNotifier when omitted.
            storages: Prebuilt storages; built from ``settings`` when omitted.
        """
        self.settings = settings or ScorekeeperSettings()
        self.storages = storages or build_storages(self.settings)
        self.notifier = notifier or InMemoryNotifier()

        self.store = EventStore(
            self.storages.deliveries,
            max_attempts=self.settings.max_write_attempts,
            retry_delay=self.settings.retry_delay_seconds,
        )
        self.aggregator = Aggregator(self.store)
        self.undo_redo = RangeUndoRedo(self.store, self.storages.operations, self.aggregator)
        self.changes = ChangeNotifier(self.notifier)
        self.locks = MatchLocks()
        self.service = ScoreService(
            self.store,
            self.aggregator,
            self.undo_redo,
            self.changes,
            locks=self.locks,
            log_level=self.settings.log_level,
            history_limit=self.settings.history_limit,
            recent_limit=self.settings.recent_limit,
        )

    @property
    def lifecycle(self) -> list[HasLifecycle]:
        components = list(self.storages.lifecycle)
        if isinstance(self.notifier, HasLifecycle):
            components.append(self.notifier)
        return components

    async def open(self) -> None:
        """Start every component implementing ``HasLifecycle``, in order.

        For MongoDB this creates the indexes.
        """
        for component in self.lifecycle:
            await component.on_startup()
        LOGGER.info("Scorekeeper opened", extra={"storage_backend": self.settings.storage_backend})

    async def close(self) -> None:
        """Stop every component implementing ``HasLifecycle``, in reverse order."""
        for component in reversed(self.lifecycle):
            await component.on_shutdown()
        LOGGER.info("Scorekeeper closed", extra={"storage_backend": self.settings.storage_backend})

    async def __aenter__(self) -> "Scorekeeper":
        await self.open()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _traceback: TracebackType | None,
    ) -> None:
        await self.close()
