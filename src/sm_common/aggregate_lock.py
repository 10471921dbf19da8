"""Per-aggregate asyncio locks — in-process single-writer discipline.

Every read-modify-write of a bundle or money request runs under the lock for
its id. Across processes the version compare-and-swap in the repositories is
what closes the window; the lock only keeps same-process writers from
burning retries against each other.

Never hold one of these locks across payment gateway I/O.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AggregateLockRegistry:
    def __init__(self, name: str) -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, aggregate_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(aggregate_id, asyncio.Lock())
        self._holders[aggregate_id] = self._holders.get(aggregate_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[aggregate_id] -= 1
            if self._holders[aggregate_id] == 0:
                # Last waiter gone: drop the entry so the registry does not grow per id
                del self._holders[aggregate_id]
                del self._locks[aggregate_id]

    def is_held(self, aggregate_id: str) -> bool:
        lock = self._locks.get(aggregate_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


bundle_locks = AggregateLockRegistry("bundle")
money_request_locks = AggregateLockRegistry("money_request")
