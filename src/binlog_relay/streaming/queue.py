"""Durable FIFO of encoded change records, backed by a Redis list.

Producers RPUSH to the tail. The delivery worker BLPOPs the head, which
removes the item before delivery is attempted (at-most-once from the
queue's point of view).
"""

from __future__ import annotations

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger()


class QueueUnavailableError(RuntimeError):
    """Raised by ``dequeue`` when there is no Redis connection at all."""


class DeliveryQueue:
    """Thin async wrapper over a Redis list used as a work queue."""

    def __init__(self, redis: Redis | None, key: str = "cdc_events") -> None:
        self._redis = redis
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def available(self) -> bool:
        return self._redis is not None

    async def enqueue(self, item: str) -> bool:
        """Append *item* to the tail. Returns ``False`` (logged) on failure."""
        if self._redis is None:
            logger.warning("queue.unavailable", action="enqueue_skipped")
            return False
        try:
            await self._redis.rpush(self._key, item)
        except (RedisError, OSError) as exc:
            logger.warning("queue.enqueue_failed", key=self._key, error=str(exc))
            return False
        logger.debug("queue.enqueued", key=self._key)
        return True

    async def dequeue(self, timeout: float = 0) -> str | None:
        """Block until the head item is available and pop it.

        ``timeout=0`` blocks indefinitely. Returns ``None`` on timeout.
        Redis errors propagate so the caller can back off.
        """
        if self._redis is None:
            msg = "Delivery queue has no Redis connection"
            raise QueueUnavailableError(msg)
        result = await self._redis.blpop([self._key], timeout=timeout)
        if not result or len(result) < 2:
            return None
        item = result[1]
        if isinstance(item, bytes):
            item = item.decode("utf-8", errors="replace")
        return item

    async def depth(self) -> int | None:
        """Number of pending items, or ``None`` if Redis can't be reached."""
        if self._redis is None:
            return None
        try:
            return int(await self._redis.llen(self._key))
        except (RedisError, OSError) as exc:
            logger.warning("queue.depth_failed", key=self._key, error=str(exc))
            return None
