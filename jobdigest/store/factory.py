"""Pick the keyed store backend for this deployment."""

from typing import Optional

from jobdigest.logging import get_logger

from .base import KeyValueStore
from .memory import InMemoryTTLStore
from .redis_store import RedisTTLStore

logger = get_logger(__name__, component="store")


def create_store(redis_url: Optional[str] = None) -> KeyValueStore:
    """
    Build the store shared by the run lease, counters and last summary.

    With a Redis URL every process (daemon and manual runs alike) shares one
    lease. Without one, the lease only guards runs inside this process.

    Raises:
        StoreError: If a Redis URL is given but the server is unreachable
    """
    if redis_url:
        return RedisTTLStore.from_url(redis_url)

    logger.info(
        "Using in-process keyed store; runs in other processes are not excluded",
        extra={"event": "store.memory.selected"},
    )
    return InMemoryTTLStore()
