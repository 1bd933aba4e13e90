"""Keyed store with TTL eviction and bounded attempt counters.

Components receive a KeyValueStore instance rather than importing a
module-level map. Tests use InMemoryTTLStore; deployments running more than
one process set REDIS_URL so that create_store() returns a RedisTTLStore.
"""

from .base import AttemptLimitExceeded, KeyValueStore, StoreError
from .factory import create_store
from .memory import InMemoryTTLStore
from .redis_store import RedisTTLStore

__all__ = [
    "KeyValueStore",
    "InMemoryTTLStore",
    "RedisTTLStore",
    "create_store",
    "StoreError",
    "AttemptLimitExceeded",
]
