# src/app/infra/store/base.py
"""
Abstract key-value store used for process-wide mutable state.
Rate-limit history and import jobs go through this interface so tests can
use an isolated instance and multi-instance deployments can share one.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

V = TypeVar("V")


class KeyValueStore(ABC, Generic[V]):
    """
    Abstract interface for state storage.

    Implementations:
    - InMemoryStore: dict guarded by a lock, single process only
    - Future: RedisStore for shared deployments
    """

    @abstractmethod
    def get(self, key: str) -> Optional[V]:
        """
        Get a value by key.

        Returns:
            The stored value, or None if absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        """Insert or replace the value stored under key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass

    @abstractmethod
    def sweep(self, predicate: Callable[[str, V], bool]) -> int:
        """
        Remove every entry for which predicate(key, value) is true.

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    def keys(self) -> Iterator[str]:
        """Iterate over a snapshot of the stored keys."""
        pass

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.get(key) is not None
