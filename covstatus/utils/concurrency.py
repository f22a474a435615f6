"""Lock-striped mapping for values written by concurrent jobs."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Mapping
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class StripedDict(Generic[K, V]):
    """Mapping split into independently locked stripes.

    ``get`` and ``put`` hold the lock of a single stripe, so writers for
    unrelated keys never wait on each other. ``snapshot`` copies one stripe at a
    time; it is consistent per key, not across the whole map.
    """

    def __init__(self, stripes: int = 16) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._locks = [threading.Lock() for _ in range(stripes)]
        self._shards: list[dict[K, V]] = [{} for _ in range(stripes)]

    def _index(self, key: K) -> int:
        return hash(key) % len(self._shards)

    def get(self, key: K) -> V | None:
        index = self._index(key)
        with self._locks[index]:
            return self._shards[index].get(key)

    def put(self, key: K, value: V) -> None:
        index = self._index(key)
        with self._locks[index]:
            self._shards[index][key] = value

    def __contains__(self, key: object) -> bool:
        index = hash(key) % len(self._shards)
        with self._locks[index]:
            return key in self._shards[index]

    def __len__(self) -> int:
        total = 0
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                total += len(shard)
        return total

    def snapshot(self) -> dict[K, V]:
        """Return a plain ``dict`` copy of every entry."""
        result: dict[K, V] = {}
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                result.update(shard)
        return result

    def replace_all(self, items: Mapping[K, V]) -> None:
        """Swap the contents for ``items`` (used when restoring persisted state)."""
        fresh: list[dict[K, V]] = [{} for _ in self._shards]
        for key, value in items.items():
            fresh[self._index(key)][key] = value
        for index, lock in enumerate(self._locks):
            with lock:
                self._shards[index] = fresh[index]
