"""
In-process key-value store with per-key atomic operations.

Used for server-side sessions and for the in-memory repositories. All
mutations go through one asyncio lock, so "insert if absent" and
"compare and swap" are atomic with respect to every other request
handled by the same event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class KeyValueStore(Generic[V]):
    def __init__(self) -> None:
        self._items: dict[str, V] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> V | None:
        async with self._lock:
            return self._items.get(key)

    async def insert_if_absent(self, key: str, value: V) -> bool:
        """
        Store `value` under `key` unless the key already exists.

        Returns True when the value was stored.
        """
        async with self._lock:
            if key in self._items:
                return False
            self._items[key] = value
            return True

    async def compare_and_swap(self, key: str, expected: V | None, new: V | None) -> bool:
        """
        Replace the current value with `new` only if it is still `expected`.

        `expected=None` means "key must be absent"; `new=None` deletes the key.
        """
        async with self._lock:
            current = self._items.get(key)
            if current != expected:
                return False
            if new is None:
                self._items.pop(key, None)
            else:
                self._items[key] = new
            return True

    async def delete(self, key: str) -> V | None:
        async with self._lock:
            return self._items.pop(key, None)

    async def delete_where(self, predicate: Callable[[V], bool]) -> int:
        async with self._lock:
            doomed = [k for (k, v) in self._items.items() if predicate(v)]
            for key in doomed:
                del self._items[key]
            return len(doomed)

    async def values(self) -> list[V]:
        async with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)
