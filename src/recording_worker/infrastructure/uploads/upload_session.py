"""Resumable multipart upload of a finished staging file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from recording_worker.domain.errors import (
    StagingFileError,
    UploadBackendError,
    UploadSessionInvalidatedError,
    describe_error,
)
from recording_worker.domain.ports import MultipartUploadBackend
from recording_worker.domain.uploads import (
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadSessionState,
    UploadTarget,
)
from recording_worker.infrastructure.uploads.resilience import retry_with_resilience

_DEFAULT_PART_SIZE_BYTES = 50 * 1024 * 1024
_DEFAULT_MAX_PART_ATTEMPTS = 3
_DEFAULT_PART_RETRY_BASE_DELAY_SECONDS = 0.5
_DEFAULT_MAX_FILE_ATTEMPTS = 3

logger = logging.getLogger(__name__)


class UploadSession:
    """One multipart transfer instance on a backend.

    State machine: UNINITIALIZED -> CONNECTED -> PART_UPLOADING -> FINALIZED,
    with ABORTED reachable from any non-final state. Parts must be uploaded
    sequentially with part numbers 1, 2, 3, ...
    """

    def __init__(
        self,
        backend: MultipartUploadBackend,
        target: UploadTarget,
        *,
        max_part_attempts: int = _DEFAULT_MAX_PART_ATTEMPTS,
        part_retry_base_delay_seconds: float = _DEFAULT_PART_RETRY_BASE_DELAY_SECONDS,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._backend = backend
        self._target = target
        self._max_part_attempts = max(1, max_part_attempts)
        self._part_retry_base_delay_seconds = max(0.0, part_retry_base_delay_seconds)
        self._log = log or logger
        self._state = UploadSessionState.UNINITIALIZED
        self._upload: MultipartUpload | None = None
        self._parts: list[UploadedPart] = []

    @property
    def state(self) -> UploadSessionState:
        return self._state

    @property
    def file_id(self) -> str | None:
        return None if self._upload is None else self._upload.file_id

    @property
    def upload_id(self) -> str | None:
        return None if self._upload is None else self._upload.upload_id

    @property
    def part_number(self) -> int:
        """Number of the last confirmed part, 0 before the first one."""

        return len(self._parts)

    @property
    def content_type(self) -> str:
        return self._target.content_type

    @property
    def parts(self) -> list[UploadedPart]:
        return list(self._parts)

    async def connect(self) -> MultipartUpload:
        """Initialize the multipart upload on the backend."""

        if self._state is not UploadSessionState.UNINITIALIZED:
            raise UploadBackendError(
                f"Upload session already initialized (state={self._state.value})."
            )

        self._log.info("Uploader connecting to team %s...", self._target.team_id)
        upload = await self._backend.initialize_upload(self._target)
        self._upload = upload
        self._state = UploadSessionState.CONNECTED
        self._log.info(
            "Uploader connected: fileId=%s uploadId=%s",
            upload.file_id,
            upload.upload_id,
        )
        return upload

    async def upload_part(self, data: bytes, part_number: int) -> UploadedPart:
        """Upload one part with exponential-backoff retries."""

        upload = self._require_active_upload()
        expected = len(self._parts) + 1
        if part_number != expected:
            raise ValueError(f"Expected part number {expected}, got {part_number}.")

        self._state = UploadSessionState.PART_UPLOADING
        self._log.info("Uploader sending part %s (%s bytes)...", part_number, len(data))

        async def send() -> UploadedPart:
            return await self._backend.upload_part(self._target, upload, part_number, data)

        part = await retry_with_resilience(
            send,
            description=f"upload part {part_number}",
            max_attempts=self._max_part_attempts,
            base_delay_seconds=self._part_retry_base_delay_seconds,
            log=self._log,
        )
        self._parts.append(part)
        self._log.info("Uploader completed part %s.", part_number)
        return part

    async def finish(self) -> StoredRecording:
        """Finalize the multipart upload."""

        upload = self._require_active_upload()
        self._log.info("Finishing upload of %s parts...", len(self._parts))
        stored = await self._backend.finalize_upload(self._target, upload, list(self._parts))
        self._state = UploadSessionState.FINALIZED
        self._log.info("Finished recording upload: %s", stored.name or stored.key)
        return stored

    async def abort(self) -> None:
        """Best-effort abort of the remote session."""

        if self._state in {UploadSessionState.FINALIZED, UploadSessionState.ABORTED}:
            return

        upload = self._upload
        self._state = UploadSessionState.ABORTED
        if upload is None:
            return
        try:
            await self._backend.abort_upload(self._target, upload)
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "Could not abort multipart upload %s: %s",
                upload.upload_id,
                describe_error(exc),
            )

    def _require_active_upload(self) -> MultipartUpload:
        if self._upload is None or self._state not in {
            UploadSessionState.CONNECTED,
            UploadSessionState.PART_UPLOADING,
        }:
            raise UploadBackendError(
                f"Upload session is not connected (state={self._state.value})."
            )
        return self._upload


def read_window(file_path: Path, offset: int, length: int) -> bytes:
    """Read exactly `length` bytes of `file_path` starting at `offset`."""

    with file_path.open("rb") as handle:
        handle.seek(offset)
        data = handle.read(length)
    if len(data) != length:
        raise StagingFileError(
            f"Short read from {file_path}: expected {length} bytes at {offset}, got {len(data)}."
        )
    return data


class StagedFileUploader:
    """Drive a staging file through fresh upload sessions until one succeeds.

    The file is read in fixed windows at explicit offsets and sent as strictly
    sequential parts. A session invalidated by the backend restarts the whole
    file on a new session, up to `max_file_attempts`. The staging file is
    removed only after a successful finish and is kept on any failure.
    """

    def __init__(
        self,
        backend: MultipartUploadBackend,
        *,
        part_size_bytes: int = _DEFAULT_PART_SIZE_BYTES,
        max_file_attempts: int = _DEFAULT_MAX_FILE_ATTEMPTS,
        max_part_attempts: int = _DEFAULT_MAX_PART_ATTEMPTS,
        part_retry_base_delay_seconds: float = _DEFAULT_PART_RETRY_BASE_DELAY_SECONDS,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        if part_size_bytes < 1:
            raise ValueError("part_size_bytes must be >= 1.")
        self._backend = backend
        self._part_size_bytes = part_size_bytes
        self._max_file_attempts = max(1, max_file_attempts)
        self._max_part_attempts = max(1, max_part_attempts)
        self._part_retry_base_delay_seconds = max(0.0, part_retry_base_delay_seconds)
        self._log = log or logger

    @property
    def part_size_bytes(self) -> int:
        return self._part_size_bytes

    async def upload(self, file_path: Path, target: UploadTarget) -> bool:
        """Upload `file_path`; return False on failure and keep the file on disk."""

        try:
            await self.upload_file(file_path, target)
        except Exception as exc:  # noqa: BLE001
            self._log.error(
                "Unable to upload recording %s for team %s: %s",
                file_path,
                target.team_id,
                describe_error(exc),
            )
            return False
        return True

    async def upload_file(self, file_path: Path, target: UploadTarget) -> StoredRecording:
        """Upload `file_path` and delete it afterwards; raise on unrecoverable failure."""

        size = await self._staging_file_size(file_path)
        attempt = 0
        while True:
            attempt += 1
            session = self.new_session(target)
            try:
                stored = await self._upload_with_session(session, file_path, size)
            except UploadSessionInvalidatedError as exc:
                self._log.error(
                    "Critical: NoSuchUpload for %s on attempt %s/%s: %s",
                    file_path,
                    attempt,
                    self._max_file_attempts,
                    describe_error(exc),
                )
                if attempt >= self._max_file_attempts:
                    raise
                self._log.info("Restarting upload session for %s...", file_path)
                continue
            except Exception:
                await session.abort()
                raise
            break

        await self._delete_staging_file(file_path)
        return stored

    def new_session(self, target: UploadTarget) -> UploadSession:
        """Build a fresh upload session for one whole-file attempt."""

        return UploadSession(
            self._backend,
            target,
            max_part_attempts=self._max_part_attempts,
            part_retry_base_delay_seconds=self._part_retry_base_delay_seconds,
            log=self._log,
        )

    async def _upload_with_session(
        self,
        session: UploadSession,
        file_path: Path,
        size: int,
    ) -> StoredRecording:
        await session.connect()

        offset = 0
        part_number = 1
        while offset < size:
            length = min(self._part_size_bytes, size - offset)
            data = await asyncio.to_thread(read_window, file_path, offset, length)
            self._log.info(
                "Uploading part %s (bytes %s-%s)",
                part_number,
                offset,
                offset + length - 1,
            )
            await session.upload_part(data, part_number)
            offset += length
            part_number += 1

        stored = await session.finish()
        self._log.info("Finished uploading %s parts for %s.", part_number - 1, file_path)
        return stored

    async def _staging_file_size(self, file_path: Path) -> int:
        try:
            stats = await asyncio.to_thread(file_path.stat)
        except FileNotFoundError as exc:
            raise StagingFileError(f"Staging file {file_path} does not exist.") from exc
        if stats.st_size <= 0:
            raise StagingFileError(f"Staging file {file_path} is empty.")
        return stats.st_size

    async def _delete_staging_file(self, file_path: Path) -> None:
        try:
            await asyncio.to_thread(file_path.unlink)
        except OSError as exc:
            self._log.warning("Could not clean up staging file %s: %s", file_path, exc)
            return
        self._log.info("Staging file deleted from disk: %s", file_path.resolve())


__all__ = [
    "StagedFileUploader",
    "UploadSession",
    "read_window",
]
