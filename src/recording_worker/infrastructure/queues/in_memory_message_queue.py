"""Process-local queue transport for development and tests."""

from __future__ import annotations

import asyncio
from collections import deque


class InMemoryMessageQueue:
    """Deque-backed FIFO queue honoring the blocking-pop timeout."""

    def __init__(self, messages: list[str] | None = None) -> None:
        self._messages: deque[str] = deque(messages or [])
        self._condition = asyncio.Condition()
        self._closed = False

    @property
    def messages(self) -> list[str]:
        """Snapshot of queued messages, head first."""

        return list(self._messages)

    @property
    def closed(self) -> bool:
        return self._closed

    async def dequeue_with_timeout(self, timeout_seconds: float) -> str | None:
        async with self._condition:
            if not self._messages:
                try:
                    await asyncio.wait_for(
                        self._condition.wait_for(lambda: bool(self._messages)),
                        timeout=timeout_seconds,
                    )
                except TimeoutError:
                    return None
            return self._messages.popleft()

    async def requeue_to_head(self, message: str) -> None:
        async with self._condition:
            self._messages.appendleft(message)
            self._condition.notify_all()

    async def publish(self, message: str) -> None:
        async with self._condition:
            self._messages.append(message)
            self._condition.notify_all()

    async def close(self) -> None:
        self._closed = True


__all__ = ["InMemoryMessageQueue"]
