"""Redis list transport for serialized job descriptors."""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisMessageQueue:
    """FIFO queue on one Redis list: RPUSH to publish, BLPOP to consume.

    Rejected jobs are returned with LPUSH so they are the next message served.
    """

    def __init__(self, redis_client: Redis, queue_name: str) -> None:
        self._redis = redis_client
        self._queue_name = queue_name
        self._closed = False

    @classmethod
    def from_url(cls, url: str, queue_name: str, client_name: str) -> RedisMessageQueue:
        """Create a queue with its own connection pool."""

        client = redis.from_url(url, client_name=client_name, decode_responses=True)
        logger.info("Redis message broker initialized for queue %s", queue_name)
        return cls(client, queue_name)

    @property
    def queue_name(self) -> str:
        return self._queue_name

    async def dequeue_with_timeout(self, timeout_seconds: float) -> str | None:
        """BLPOP the head message, or return None once the timeout elapses."""

        result = await self._redis.blpop([self._queue_name], timeout=timeout_seconds)
        if result is None:
            return None
        _, message = result
        return message.decode("utf-8") if isinstance(message, bytes) else str(message)

    async def requeue_to_head(self, message: str) -> None:
        await self._redis.lpush(self._queue_name, message)

    async def publish(self, message: str) -> None:
        await self._redis.rpush(self._queue_name, message)

    async def close(self) -> None:
        """Close the connection pool; safe to call more than once."""

        if self._closed:
            return
        self._closed = True
        try:
            await self._redis.aclose()
        except RedisError as exc:
            logger.warning("Error closing Redis connection: %s", exc)
            return
        logger.info("Redis message broker connection closed.")


__all__ = ["RedisMessageQueue"]
