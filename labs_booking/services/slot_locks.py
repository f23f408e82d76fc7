import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SlotLockRegistry:
    """Per-slot mutexes so check-then-insert runs one at a time for each slot key.

    Locks are created on demand and dropped once nobody holds or waits on
    them, so the registry does not grow with every slot ever booked.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


slot_locks = SlotLockRegistry()
