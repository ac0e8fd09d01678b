"""Recorder that captures a meeting stream exposed over HTTP."""

from __future__ import annotations

import asyncio
import logging

import httpx

from recording_worker.domain.errors import KnownJobError, describe_error
from recording_worker.domain.jobs import JobRequest
from recording_worker.domain.ports import ChunkSink
from recording_worker.infrastructure.uploads.resilience import retry_action_with_wait

_FATAL_STATUS_CODES = {401, 403, 404, 410}

logger = logging.getLogger(__name__)


class HttpStreamRecorder:
    """Stream the body of `request.url` into a chunk sink.

    - Opening the stream is retried with a fixed wait between attempts.
    - Recording stops when the stream ends or the maximum duration elapses.
    - Authorization and not-found responses are permanent job failures.
    """

    def __init__(
        self,
        max_duration_seconds: float = 180 * 60,
        timeout_seconds: float = 30.0,
        open_attempts: int = 3,
        open_retry_wait_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._max_duration_seconds = max_duration_seconds
        self._timeout_seconds = timeout_seconds
        self._open_attempts = max(1, open_attempts)
        self._open_retry_wait_seconds = max(0.0, open_retry_wait_seconds)
        self._transport = transport

    async def record(self, request: JobRequest, sink: ChunkSink) -> None:
        """Forward stream chunks to `sink` until the stream or time budget ends."""

        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            transport=self._transport,
            follow_redirects=True,
        ) as http_client:

            async def open_stream() -> httpx.Response:
                return await self._open_stream(http_client, request.url)

            response = await retry_action_with_wait(
                "open recording stream",
                open_stream,
                attempts=self._open_attempts,
                wait_seconds=self._open_retry_wait_seconds,
            )
            try:
                total_bytes = await self._forward(response, sink)
            finally:
                await response.aclose()

        logger.info("Recording of %s ended after %s bytes.", request.url, total_bytes)

    async def _open_stream(self, http_client: httpx.AsyncClient, url: str) -> httpx.Response:
        try:
            response = await http_client.send(http_client.build_request("GET", url), stream=True)
        except httpx.HTTPError as exc:
            raise ConnectionError(f"GET {url} failed: {describe_error(exc)}") from exc

        if response.is_success:
            return response

        await response.aclose()
        message = f"GET {url} failed: {response.status_code}"
        if response.status_code in _FATAL_STATUS_CODES:
            raise KnownJobError(message, retryable=False)
        raise ConnectionError(message)

    async def _forward(self, response: httpx.Response, sink: ChunkSink) -> int:
        total_bytes = 0
        try:
            async with asyncio.timeout(self._max_duration_seconds):
                async for chunk in response.aiter_bytes():
                    if not chunk:
                        continue
                    if not await sink.save_chunk(chunk):
                        logger.warning("Chunk of %s bytes was refused by the sink.", len(chunk))
                    total_bytes += len(chunk)
        except TimeoutError:
            logger.info(
                "Maximum recording duration of %ss reached; stopping capture.",
                self._max_duration_seconds,
            )
        return total_bytes


__all__ = ["HttpStreamRecorder"]
