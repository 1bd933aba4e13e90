"""In-process keyed store backed by a dict."""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .base import AttemptLimitExceeded, KeyValueStore

# value, absolute expiry (monotonic seconds) or None
_Entry = Tuple[Any, Optional[float]]


class InMemoryTTLStore(KeyValueStore):
    """Thread-safe dict store with lazy expiry.

    Expired entries are dropped when touched; call purge_expired() to sweep
    the rest. Suitable for a single process and for tests; multi-instance
    deployments need a shared backend implementing KeyValueStore.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, _Entry] = {}
        self._lock = threading.RLock()

    def _live_entry(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl: Optional[float]) -> Optional[float]:
        if ttl is None:
            return None
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got: {ttl}")
        return self._clock() + ttl

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            return default if entry is None else entry[0]

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl))

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._live_entry(key) is None:
                return False
            del self._data[key]
            return True

    def ttl(self, key: str) -> Optional[float]:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None or entry[1] is None:
                return None
            return max(0.0, entry[1] - self._clock())

    def incr(
        self,
        key: str,
        amount: int = 1,
        ttl: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                current, expires_at = 0, self._expiry(ttl)
            else:
                current, expires_at = entry
                if not isinstance(current, int):
                    raise TypeError(f"Value at '{key}' is not a counter")

            new_value = current + amount
            if limit is not None and new_value > limit:
                raise AttemptLimitExceeded(key, limit, current)

            self._data[key] = (new_value, expires_at)
            return new_value

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, (_, expires_at) in self._data.items()
                if expires_at is not None and expires_at <= now
            ]
            for key in expired:
                del self._data[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            self.purge_expired()
            return len(self._data)
