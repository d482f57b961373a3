"""
Keyed Locks

Per-key asyncio locks serializing read-modify-write cycles on one room,
and first-use provisioning of one user, within a worker process.
Cross-process safety comes from the storage layer (version checks and
unique constraints).
"""
import asyncio
import contextvars
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, FrozenSet

# Keys held by the current execution context, so nested acquisition of the
# same key (e.g. create room -> join creator) does not deadlock.
_held_keys: contextvars.ContextVar[FrozenSet[str]] = contextvars.ContextVar(
    "_situation_room_held_keys", default=frozenset()
)


class KeyedLockManager:
    """In-process keyed asyncio locks with LRU eviction of idle locks"""

    def __init__(self, max_locks: int = 1024):
        self._locks: "OrderedDict[str, asyncio.Lock]" = OrderedDict()
        self._refcounts: Dict[str, int] = {}
        self._max_locks = max_locks

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key in self._locks:
            self._locks.move_to_end(key)
            self._refcounts[key] = self._refcounts.get(key, 0) + 1
            return self._locks[key]

        lock = asyncio.Lock()
        self._locks[key] = lock
        self._refcounts[key] = 1
        self._evict()
        return lock

    def _release_ref(self, key: str) -> None:
        count = self._refcounts.get(key, 0) - 1
        if count <= 0:
            self._refcounts.pop(key, None)
        else:
            self._refcounts[key] = count

    def _evict(self) -> None:
        if len(self._locks) <= self._max_locks:
            return
        to_remove = []
        for key, lock in self._locks.items():
            if len(self._locks) - len(to_remove) <= self._max_locks:
                break
            if not lock.locked() and self._refcounts.get(key, 0) <= 0:
                to_remove.append(key)
        for key in to_remove:
            self._locks.pop(key)
            self._refcounts.pop(key, None)

    @asynccontextmanager
    async def locked(self, key: str) -> AsyncIterator[None]:
        """Acquire the lock for key (reentrant within one context)"""
        held = _held_keys.get()
        if key in held:
            yield
            return

        lock = self._get_lock(key)
        try:
            async with lock:
                token = _held_keys.set(held | frozenset({key}))
                try:
                    yield
                finally:
                    _held_keys.reset(token)
        finally:
            self._release_ref(key)

    def room(self, room_id: str):
        """Lock guarding one room's persisted state"""
        return self.locked(f"room:{room_id}")

    def user(self, user_id: str, tenant_id: str):
        """Lock guarding first-use provisioning of one user"""
        return self.locked(f"user:{tenant_id}:{user_id}")

    @property
    def size(self) -> int:
        return len(self._locks)
