"""Disk-backed chunk queue that durably stages an in-flight recording."""

from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from collections.abc import Callable
from pathlib import Path

from recording_worker.domain.errors import describe_error
from recording_worker.infrastructure.staging.staging_paths import (
    staging_file_path,
    staging_folder_path,
)

_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_DELAY_SECONDS = 0.25
_DEFAULT_MAX_GLOBAL_FAILURES = 5
_DEFAULT_IDLE_POLL_SECONDS = 0.5

logger = logging.getLogger(__name__)

ChunkWriteFunction = Callable[[Path, bytes], None]


def append_chunk_to_file(path: Path, data: bytes) -> None:
    """Append `data` to `path` and flush it to stable storage."""

    with path.open("ab") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())


def truncate_chunk_file(path: Path, size: int) -> None:
    """Drop bytes past `size` left behind by a failed append."""

    try:
        current_size = path.stat().st_size
    except FileNotFoundError:
        return
    if current_size > size:
        os.truncate(path, size)


class ChunkWriter:
    """Write incoming chunks to one staging file in strict arrival order.

    - `save_chunk` enqueues and returns immediately; a single background drain
      task appends queued chunks to the file.
    - Each chunk is retried with linear backoff. A chunk that still fails goes
      back to the head of the queue and counts as one consecutive failure.
    - Reaching the global failure ceiling abandons the writer: queued chunks
      are discarded and later chunks are refused.
    """

    def __init__(
        self,
        file_path: Path,
        *,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = _DEFAULT_RETRY_DELAY_SECONDS,
        max_global_failures: int = _DEFAULT_MAX_GLOBAL_FAILURES,
        idle_poll_seconds: float = _DEFAULT_IDLE_POLL_SECONDS,
        write_chunk: ChunkWriteFunction | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._file_path = Path(file_path)
        self._max_retries = max(0, max_retries)
        self._retry_delay_seconds = max(0.0, retry_delay_seconds)
        self._max_global_failures = max(1, max_global_failures)
        self._idle_poll_seconds = max(0.001, idle_poll_seconds)
        self._write_chunk = write_chunk or append_chunk_to_file
        self._log = log or logger

        self._queue: deque[bytes] = deque()
        self._writing = False
        self._abandoned = False
        self._consecutive_failures = 0
        self._bytes_written = 0
        self._task: asyncio.Task[None] | None = None

    @classmethod
    async def create(
        cls,
        staging_root: Path,
        user_id: str,
        temp_file_id: str,
        *,
        max_retries: int = _DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = _DEFAULT_RETRY_DELAY_SECONDS,
        max_global_failures: int = _DEFAULT_MAX_GLOBAL_FAILURES,
        idle_poll_seconds: float = _DEFAULT_IDLE_POLL_SECONDS,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> ChunkWriter:
        """Prepare the per-user staging directory and return a writer for it."""

        active_log = log or logger
        folder_path = staging_folder_path(staging_root, user_id)
        try:
            if await asyncio.to_thread(folder_path.exists):
                active_log.info("Found the temp directory already: %s", folder_path)
            else:
                active_log.info("Temp directory does not exist. Creating %s", folder_path)
                await asyncio.to_thread(folder_path.mkdir, parents=True, exist_ok=True)
        except OSError:
            active_log.exception("Failed to create staging directory %s", folder_path)
            raise

        return cls(
            staging_file_path(staging_root, user_id, temp_file_id),
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
            max_global_failures=max_global_failures,
            idle_poll_seconds=idle_poll_seconds,
            log=log,
        )

    @property
    def file_path(self) -> Path:
        """Staging file receiving the chunks."""

        return self._file_path

    @property
    def pending_chunks(self) -> int:
        return len(self._queue)

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def is_writing(self) -> bool:
        return self._writing

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def save_chunk(self, data: bytes) -> bool:
        """Queue `data` for writing. Never raises; returns False when refused."""

        try:
            return self._enqueue(data)
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Unable to queue chunk for %s: %s", self._file_path, describe_error(exc))
            return False

    async def finalize(self) -> bool:
        """Wait for the drain task, flush leftovers, and report whether all chunks landed."""

        try:
            await self._wait_until_idle()
            if self._queue and not self._abandoned:
                self._writing = True
                try:
                    await self._drain()
                finally:
                    self._writing = False
        except Exception:
            self._log.exception("Critical: failed to finalise staging file %s", self._file_path)
            return False

        if self._abandoned:
            self._log.error("Staging file %s is incomplete; writer was abandoned.", self._file_path)
            return False
        if self._queue:
            self._log.error(
                "Staging file %s still has %s unwritten chunks.",
                self._file_path,
                len(self._queue),
            )
            return False
        return True

    async def staging_file_exists(self) -> bool:
        """Return whether the staging file was created on disk."""

        return await asyncio.to_thread(self._file_path.exists)

    def _enqueue(self, data: bytes) -> bool:
        if self._abandoned:
            self._log.warning("Dropping chunk for abandoned staging file %s", self._file_path)
            return False

        self._queue.append(bytes(data))
        if not self._writing:
            self._writing = True
            self._task = asyncio.create_task(
                self._run_writer(),
                name=f"chunk-writer-{self._file_path.name}",
            )
        return True

    async def _run_writer(self) -> None:
        try:
            await self._drain()
        except Exception:
            self._log.exception("Failure while draining chunks to %s", self._file_path)
        finally:
            self._writing = False

    async def _drain(self) -> None:
        """Write queued chunks head-first until the queue is empty or abandoned."""

        while self._queue:
            chunk = self._queue.popleft()
            if await self._write_with_retries(chunk):
                self._consecutive_failures = 0
                continue

            self._queue.appendleft(chunk)
            self._consecutive_failures += 1
            if self._consecutive_failures >= self._max_global_failures:
                dropped = len(self._queue)
                self._queue.clear()
                self._abandoned = True
                self._log.error(
                    "Abandoning writes to %s after %s consecutive failures; %s chunks lost.",
                    self._file_path,
                    self._consecutive_failures,
                    dropped,
                )
                return
            self._log.info(
                "Temporarily exiting disk write on error for %s (%s/%s).",
                self._file_path,
                self._consecutive_failures,
                self._max_global_failures,
            )

    async def _write_with_retries(self, chunk: bytes) -> bool:
        for attempt in range(1, self._max_retries + 2):
            try:
                await asyncio.to_thread(self._write_chunk, self._file_path, chunk)
            except Exception as exc:  # noqa: BLE001
                await self._discard_partial_write()
                if attempt > self._max_retries:
                    self._log.warning(
                        "Chunk write to %s failed after %s attempts: %s",
                        self._file_path,
                        attempt,
                        describe_error(exc),
                    )
                    return False
                self._log.error(
                    "Retrying chunk write to %s, attempt %s: %s",
                    self._file_path,
                    attempt,
                    describe_error(exc),
                )
                await asyncio.sleep(self._retry_delay_seconds * attempt)
                continue

            self._bytes_written += len(chunk)
            return True
        return False

    async def _discard_partial_write(self) -> None:
        """Cut the staging file back to the bytes of fully written chunks."""

        try:
            await asyncio.to_thread(truncate_chunk_file, self._file_path, self._bytes_written)
        except OSError as exc:
            self._log.error(
                "Unable to roll back partial write to %s: %s",
                self._file_path,
                describe_error(exc),
            )

    async def _wait_until_idle(self) -> None:
        while self._writing:
            self._log.info("Waiting on staging file write to finish: %s", self._file_path)
            await asyncio.sleep(self._idle_poll_seconds)


__all__ = ["ChunkWriteFunction", "ChunkWriter", "append_chunk_to_file", "truncate_chunk_file"]
