"""Job closures that record a meeting to disk and upload the result."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from recording_worker.domain.errors import JobRequestError, RecordingUploadError, describe_error
from recording_worker.domain.jobs import Job, JobRequest, create_correlation_id, job_logger
from recording_worker.domain.ports import MultipartUploadBackend, Recorder
from recording_worker.domain.uploads import DEFAULT_CONTENT_TYPE, DEFAULT_FOLDER_ID, UploadTarget
from recording_worker.infrastructure.staging import (
    STAGING_FILE_EXTENSION,
    ChunkWriter,
    build_temp_file_id,
)
from recording_worker.infrastructure.uploads import StagedFileUploader

UploadBackendFactory = Callable[[JobRequest], MultipartUploadBackend]


class RecordingJobFactory:
    """Build JobStore jobs from serialized job descriptors.

    Each attempt records into its own staging file, finalizes the writer and
    uploads the file. A failed upload ends the job for good: the staging file
    stays on disk and the meeting is not recorded again.
    """

    def __init__(
        self,
        recorder: Recorder,
        backend_factory: UploadBackendFactory,
        staging_root: Path,
        key_prefix: str = "",
        part_size_bytes: int = 50 * 1024 * 1024,
        max_file_attempts: int = 3,
        max_part_attempts: int = 3,
        part_retry_base_delay_seconds: float = 0.5,
        chunk_write_max_retries: int = 3,
        chunk_write_retry_delay_seconds: float = 0.25,
        chunk_write_max_global_failures: int = 5,
        chunk_writer_idle_poll_seconds: float = 0.5,
    ) -> None:
        self._recorder = recorder
        self._backend_factory = backend_factory
        self._staging_root = Path(staging_root)
        self._key_prefix = key_prefix.strip("/")
        self._part_size_bytes = part_size_bytes
        self._max_file_attempts = max_file_attempts
        self._max_part_attempts = max_part_attempts
        self._part_retry_base_delay_seconds = part_retry_base_delay_seconds
        self._chunk_write_max_retries = chunk_write_max_retries
        self._chunk_write_retry_delay_seconds = chunk_write_retry_delay_seconds
        self._chunk_write_max_global_failures = chunk_write_max_global_failures
        self._chunk_writer_idle_poll_seconds = chunk_writer_idle_poll_seconds

    def parse(self, message: str) -> JobRequest:
        """Parse a queue message into a job request."""

        try:
            return JobRequest.model_validate_json(message)
        except ValidationError as exc:
            raise JobRequestError(f"Invalid job descriptor: {exc}") from exc

    def build(self, request: JobRequest) -> Job:
        """Return a job whose task records and uploads one attempt."""

        correlation_id = create_correlation_id(
            request.team_id,
            request.user_id,
            request.bot_id,
            request.event_id,
            request.url,
        )
        log = job_logger(correlation_id, provider=request.provider.value)

        async def task(retry_count: int) -> None:
            await self.run_attempt(request, retry_count, log)

        return Job(task=task, logger=log)

    async def run_attempt(
        self,
        request: JobRequest,
        retry_count: int,
        log: logging.LoggerAdapter,
    ) -> None:
        """Record into a fresh staging file, then upload it."""

        temp_file_id = build_temp_file_id(request.user_id, request.entity_id, retry_count)
        writer = await ChunkWriter.create(
            self._staging_root,
            request.user_id,
            temp_file_id,
            max_retries=self._chunk_write_max_retries,
            retry_delay_seconds=self._chunk_write_retry_delay_seconds,
            max_global_failures=self._chunk_write_max_global_failures,
            idle_poll_seconds=self._chunk_writer_idle_poll_seconds,
            log=log,
        )

        log.info("Recording %s for team %s (attempt %s)", request.url, request.team_id, retry_count)
        try:
            await self._recorder.record(request, writer)
        except Exception:
            await writer.finalize()
            raise

        log.info("Begin recording upload to server for user %s", request.user_id)
        if not await writer.finalize():
            raise RecordingUploadError(
                f"Unable to finalise the temp recording file: {request.user_id} {request.entity_id}"
            )

        uploader = StagedFileUploader(
            self._backend_factory(request),
            part_size_bytes=self._part_size_bytes,
            max_file_attempts=self._max_file_attempts,
            max_part_attempts=self._max_part_attempts,
            part_retry_base_delay_seconds=self._part_retry_base_delay_seconds,
            log=log,
        )
        try:
            await uploader.upload_file(writer.file_path, self.upload_target(request, temp_file_id))
        except Exception as exc:
            log.error(
                "Unable to upload recording to server for user %s team %s: %s",
                request.user_id,
                request.team_id,
                describe_error(exc),
            )
            raise RecordingUploadError(
                f"Recording upload failed; staging file kept at {writer.file_path}"
            ) from exc
        log.info("Recording upload finished for user %s team %s", request.user_id, request.team_id)

    def upload_target(self, request: JobRequest, temp_file_id: str) -> UploadTarget:
        """Describe where the staged recording of `request` is stored."""

        key_parts = [request.team_id, request.user_id, f"{temp_file_id}{STAGING_FILE_EXTENSION}"]
        if self._key_prefix:
            key_parts.insert(0, self._key_prefix)
        return UploadTarget(
            team_id=request.team_id,
            key="/".join(key_parts),
            folder_id=DEFAULT_FOLDER_ID,
            content_type=DEFAULT_CONTENT_TYPE,
            name_prefix=request.recording_name_prefix,
            bot_id=request.bot_id or "",
            timezone=request.timezone,
        )


__all__ = ["RecordingJobFactory", "UploadBackendFactory"]
