"""Per-account mutual exclusion for browser work."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass


@dataclass
class LockTicket:
    """What a lock holder saw when it acquired the lock."""

    key: str
    generation_at_request: int
    generation_at_acquire: int

    @property
    def completed_while_waiting(self) -> bool:
        """True if another holder recorded a verified login meanwhile."""
        return self.generation_at_acquire > self.generation_at_request


class AccountLocks:
    """
    One ``asyncio.Lock`` per account key.

    Each key also carries a generation counter, bumped whenever a holder
    records a verified login, so waiters can tell whether fresh cookies
    appeared while they were queued.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._generations: dict[str, int] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def mark_verified(self, key: str) -> None:
        """Record that a verified session for ``key`` was just stored."""
        self._generations[key] = self.generation(key) + 1

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[LockTicket]:
        """Acquire the account's lock, waiting as long as needed."""
        lock = self._lock(key)
        requested = self.generation(key)
        async with lock:
            yield LockTicket(
                key=key,
                generation_at_request=requested,
                generation_at_acquire=self.generation(key),
            )
