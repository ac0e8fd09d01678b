"""Job queue transports."""

from recording_worker.infrastructure.queues.in_memory_message_queue import InMemoryMessageQueue
from recording_worker.infrastructure.queues.redis_message_queue import RedisMessageQueue

__all__ = ["InMemoryMessageQueue", "RedisMessageQueue"]
