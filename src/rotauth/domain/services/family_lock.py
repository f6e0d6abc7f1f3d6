"""Per-family serialization point.

Keyed asyncio locks, one per family currently in use. Families never share
a lock, so unrelated exchanges run concurrently. Entries are reference
counted and dropped once the last holder or waiter leaves.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class FamilyLockRegistry:
    """In-process lock registry sharded by family id."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, family_id: str) -> AsyncIterator[None]:
        """Hold the lock of one family for the duration of the block."""
        entry = self._entries.get(family_id)
        if entry is None:
            entry = _LockEntry()
            self._entries[family_id] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(family_id, None)

    def __len__(self) -> int:
        return len(self._entries)

    def is_locked(self, family_id: str) -> bool:
        entry = self._entries.get(family_id)
        return entry is not None and entry.lock.locked()
