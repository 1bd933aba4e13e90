"""Keyed store abstraction with TTL-based expiry."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class StoreError(Exception):
    """Base exception for keyed store errors."""

    pass


class AttemptLimitExceeded(StoreError):
    """Raised when an attempt counter would pass its limit."""

    def __init__(self, key: str, limit: int, current: int):
        super().__init__(f"Attempt limit {limit} exceeded for '{key}' (current: {current})")
        self.key = key
        self.limit = limit
        self.current = current


class KeyValueStore(ABC):
    """Keyed store with per-key expiry.

    Implementations must be safe to share between threads. A value whose TTL
    has elapsed behaves exactly like a missing key.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value; ttl in seconds, None means no expiry."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key; returns True if a live value was removed."""

    @abstractmethod
    def ttl(self, key: str) -> Optional[float]:
        """Seconds until key expires, or None if missing or non-expiring."""

    @abstractmethod
    def incr(
        self,
        key: str,
        amount: int = 1,
        ttl: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> int:
        """Increment a counter and return the new value.

        The TTL applies only when the counter is created, so a window opens on
        the first attempt and closes ``ttl`` seconds later regardless of later
        increments.

        Raises:
            AttemptLimitExceeded: If the new value would exceed limit; the
                stored value is left unchanged
        """

    def exists(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel
