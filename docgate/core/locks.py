"""Striped asyncio locks for per-key serialization of shared state."""

import asyncio
import zlib
from contextlib import asynccontextmanager
from typing import AsyncIterator


class StripedLocks:
    """A fixed table of asyncio locks addressed by key.

    Two keys may share a stripe, which only costs some contention. The same
    key always maps to the same lock, so read-modify-write sequences on one
    key never interleave.
    """

    def __init__(self, stripes: int = 64):
        """Initialize the lock table.

        Args:
            stripes: Number of locks in the table
        """
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._locks = [asyncio.Lock() for _ in range(stripes)]

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, key: str) -> asyncio.Lock:
        # crc32 instead of hash() so the mapping is stable across processes
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock that guards ``key``."""
        async with self.lock_for(key):
            yield
