# visionhub/services/registry.py
"""
Lock-guarded in-memory map keyed by device id.

The fleet monitor keeps its MonitorEntry table in one of these and the capture
supervisor its live-session table. The lock is held only for the in-memory
mutation itself, never across a probe, a process spawn or any other await.
"""

import asyncio
from contextlib import asynccontextmanager


class Registry:
    def __init__(self):
        self._items = {}
        self._lock = asyncio.Lock()

    def __contains__(self, key) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    @asynccontextmanager
    async def locked(self):
        """Exclusive access to the underlying dict for compound read-modify-write."""
        async with self._lock:
            yield self._items

    async def get(self, key, default=None):
        async with self._lock:
            return self._items.get(key, default)

    async def put_if_absent(self, key, value) -> bool:
        async with self._lock:
            if key in self._items:
                return False
            self._items[key] = value
            return True

    async def pop(self, key, default=None):
        async with self._lock:
            return self._items.pop(key, default)

    async def pop_if(self, key, expected) -> bool:
        """Remove key only while it still maps to this exact object."""
        async with self._lock:
            if self._items.get(key) is not expected:
                return False
            del self._items[key]
            return True

    async def snapshot(self) -> dict:
        async with self._lock:
            return dict(self._items)
