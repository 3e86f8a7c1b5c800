"""Delivery storage interface and its in-memory implementation."""

from abc import ABC, abstractmethod
from collections import defaultdict

from ..domain import ConcurrencyError, DeliveryRecord


class DeliveryStorage(ABC):
    """Abstract interface for durable, append-only delivery persistence.

    Implementations store every version of every delivery and never update
    or delete a stored record.

    Key responsibilities:
    - **Immutability**: Records cannot be modified after storage
    - **Uniqueness**: At most one record per ``(match_id, key, version)``
    - **Latest-version queries**: The "group by key, take max version" read
    """

    @abstractmethod
    async def insert(self, record: DeliveryRecord) -> None:
        """Persist a new delivery version.

        Args:
            record: The version to append.

        Raises:
            ConcurrencyError: If a record with the same match, key and
                version already exists.
            StorageError: If the underlying store fails.
        """
        ...

    @abstractmethod
    async def find_latest_version(self, match_id: str, key: str) -> DeliveryRecord | None:
        """Return the highest-version record for one key, or None."""
        ...

    @abstractmethod
    async def find_active_per_key(self, match_id: str) -> list[DeliveryRecord]:
        """Return the highest-version record of every key in a match.

        Returns:
            Active records of all kinds, ordered by ``(over, ball)``.
        """
        ...

    @abstractmethod
    async def find_all(self, match_id: str) -> list[DeliveryRecord]:
        """Return every stored version of a match.

        Returns:
            Records ordered by ``(over, ball, version)``.
        """
        ...


class InMemoryDeliveryStorage(DeliveryStorage):
    """Dictionary-based in-memory delivery storage.

    Versions are kept in lists keyed by ``(match_id, key)``. Inserts must
    target exactly the next version, which both rejects duplicates and keeps
    each version sequence gap free.

    Suitable for tests, development and single-process demos. Data is lost
    on restart.
    """

    def __init__(self) -> None:
        self.by_key: dict[tuple[str, str], list[DeliveryRecord]] = defaultdict(list)

    async def insert(self, record: DeliveryRecord) -> None:
        versions = self.by_key[(record.match_id, record.key)]
        current_version = versions[-1].version if versions else 0

        if record.version != current_version + 1:
            raise ConcurrencyError(record.match_id, record.key, record.version)

        versions.append(record)

    async def find_latest_version(self, match_id: str, key: str) -> DeliveryRecord | None:
        versions = self.by_key.get((match_id, key))
        return versions[-1] if versions else None

    async def find_active_per_key(self, match_id: str) -> list[DeliveryRecord]:
        active = [
            versions[-1]
            for (record_match_id, _), versions in self.by_key.items()
            if record_match_id == match_id and versions
        ]
        return sorted(active, key=lambda r: (r.over, r.ball))

    async def find_all(self, match_id: str) -> list[DeliveryRecord]:
        records = [
            record
            for (record_match_id, _), versions in self.by_key.items()
            if record_match_id == match_id
            for record in versions
        ]
        return sorted(records, key=lambda r: (r.over, r.ball, r.version))
