# src/app/infra/store/memory.py
from __future__ import annotations

import threading
from typing import Callable, Iterator, Optional

from src.app.infra.store.base import KeyValueStore, V


class InMemoryStore(KeyValueStore[V]):
    """Dict-backed store. Every access holds the lock, so threadpool callers are safe."""

    def __init__(self) -> None:
        self._data: dict[str, V] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def sweep(self, predicate: Callable[[str, V], bool]) -> int:
        with self._lock:
            doomed = [key for key, value in self._data.items() if predicate(key, value)]
            for key in doomed:
                del self._data[key]
        return len(doomed)

    def keys(self) -> Iterator[str]:
        with self._lock:
            snapshot = list(self._data)
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
