"""Redis-backed keyed store shared by every process pointing at the same server."""

import json
from typing import Any, Optional

import redis

from jobdigest.logging import get_logger

from .base import AttemptLimitExceeded, KeyValueStore, StoreError

logger = get_logger(__name__, component="store")

DEFAULT_KEY_PREFIX = "jobdigest:"


class RedisTTLStore(KeyValueStore):
    """KeyValueStore on top of Redis.

    Values are stored as JSON text; counters are plain integers, which Redis
    can increment in place. Expiry is delegated to Redis, so a lease left
    behind by a crashed process still times out.

    Every redis-py error is re-raised as StoreError.

    Args:
        client: A redis.Redis client created with ``decode_responses=True``
        key_prefix: Namespace prepended to every key
    """

    def __init__(self, client: "redis.Redis", key_prefix: str = DEFAULT_KEY_PREFIX):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = DEFAULT_KEY_PREFIX) -> "RedisTTLStore":
        """Connect to ``url`` and verify the server answers.

        Raises:
            StoreError: If the URL is invalid or the server is unreachable
        """
        try:
            client = redis.from_url(url, decode_responses=True)
            client.ping()
        except (redis.RedisError, ValueError) as e:
            raise StoreError(f"Could not connect to Redis: {e}") from e

        logger.info(
            "Connected to Redis keyed store",
            extra={"event": "store.redis.connected", "key_prefix": key_prefix},
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _ttl_ms(ttl: Optional[float]) -> Optional[int]:
        if ttl is None:
            return None
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got: {ttl}")
        return max(1, int(ttl * 1000))

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as e:
            raise StoreError(f"Redis GET failed for '{key}': {e}") from e
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        payload = json.dumps(value, default=str)
        try:
            self.client.set(self._key(key), payload, px=self._ttl_ms(ttl))
        except redis.RedisError as e:
            raise StoreError(f"Redis SET failed for '{key}': {e}") from e

    def delete(self, key: str) -> bool:
        try:
            return bool(self.client.delete(self._key(key)))
        except redis.RedisError as e:
            raise StoreError(f"Redis DEL failed for '{key}': {e}") from e

    def ttl(self, key: str) -> Optional[float]:
        try:
            remaining_ms = self.client.pttl(self._key(key))
        except redis.RedisError as e:
            raise StoreError(f"Redis PTTL failed for '{key}': {e}") from e
        # -2: missing, -1: no expiry
        if remaining_ms is None or remaining_ms < 0:
            return None
        return remaining_ms / 1000.0

    def incr(
        self,
        key: str,
        amount: int = 1,
        ttl: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> int:
        full_key = self._key(key)
        ttl_ms = self._ttl_ms(ttl)
        try:
            # Create the counter with its expiry in one step; INCRBY keeps the TTL.
            self.client.set(full_key, 0, px=ttl_ms, nx=True)
            new_value = int(self.client.incrby(full_key, amount))
            if limit is not None and new_value > limit:
                self.client.decrby(full_key, amount)
                raise AttemptLimitExceeded(key, limit, new_value - amount)
        except redis.ResponseError as e:
            raise TypeError(f"Value at '{key}' is not a counter") from e
        except redis.RedisError as e:
            raise StoreError(f"Redis INCRBY failed for '{key}': {e}") from e
        return new_value
