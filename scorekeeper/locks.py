"""Per-match mutual exclusion for mutations."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class MatchLocks:
    """One ``asyncio.Lock`` per match id, created on first use.

    Every mutation of a match (apply, undo, redo) runs under its lock, so the
    read of the active version and the write of the next one never interleave
    with another mutation of the same match. Reads take no lock, and
    different matches never wait on each other.

    Limitations:
    - Locks are never evicted: one is kept per match id seen for the life of
      the process, so the dict grows with the number of distinct matches.
    - Process-local: separate processes writing one match are not serialized

    Example:
        >>> locks = MatchLocks()
        >>> async with locks.hold("default"):
        ...     await store.apply(intent)
    """

    __slots__ = ("_locks",)

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, match_id: str) -> asyncio.Lock:
        if match_id not in self._locks:
            self._locks[match_id] = asyncio.Lock()
        return self._locks[match_id]

    def locked(self, match_id: str) -> bool:
        lock = self._locks.get(match_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, match_id: str) -> AsyncIterator[None]:
        async with self.lock_for(match_id):
            yield
