"""Application bootstrap/wiring."""

import logging

from recording_worker.application.services import (
    JobQueueConsumer,
    JobStore,
    RecordingJobFactory,
    RecordingWorker,
    UploadBackendFactory,
)
from recording_worker.config import Settings, UploadBackendKind
from recording_worker.domain.jobs import JobRequest
from recording_worker.domain.ports import MessageQueue, MultipartUploadBackend, StorageProvider
from recording_worker.infrastructure.queues import RedisMessageQueue
from recording_worker.infrastructure.recorders import HttpStreamRecorder
from recording_worker.infrastructure.storage import build_storage_provider
from recording_worker.infrastructure.uploads import FileServiceUploadBackend

logger = logging.getLogger(__name__)


def _build_storage_provider(settings: Settings) -> StorageProvider | None:
    if settings.upload_backend != UploadBackendKind.STORAGE:
        return None
    return build_storage_provider(settings)


def _build_backend_factory(
    settings: Settings,
    storage_provider: StorageProvider | None,
) -> UploadBackendFactory:
    if storage_provider is not None:
        provider = storage_provider

        def storage_backend(_: JobRequest) -> MultipartUploadBackend:
            return provider

        return storage_backend

    def file_service_backend(request: JobRequest) -> MultipartUploadBackend:
        return FileServiceUploadBackend(
            base_url=settings.file_service_base_url,
            bearer_token=request.bearer_token,
            timeout_seconds=settings.file_service_timeout_seconds,
        )

    return file_service_backend


def _build_message_queue(settings: Settings) -> MessageQueue | None:
    if not settings.redis_enabled:
        logger.info("Redis message broker disabled; jobs arrive over HTTP only.")
        return None
    return RedisMessageQueue.from_url(
        settings.redis_url,
        queue_name=settings.redis_queue_name,
        client_name=settings.redis_client_name,
    )


def build_job_factory(
    settings: Settings,
    storage_provider: StorageProvider | None = None,
) -> RecordingJobFactory:
    """Compose the per-job recording and upload pipeline."""

    return RecordingJobFactory(
        recorder=HttpStreamRecorder(
            max_duration_seconds=settings.max_recording_duration_minutes * 60,
            timeout_seconds=settings.recorder_timeout_seconds,
        ),
        backend_factory=_build_backend_factory(settings, storage_provider),
        staging_root=settings.staging_root,
        key_prefix=settings.storage_key_prefix,
        part_size_bytes=settings.upload_part_size_bytes,
        max_file_attempts=settings.upload_max_file_attempts,
        max_part_attempts=settings.upload_part_max_attempts,
        part_retry_base_delay_seconds=settings.upload_part_retry_base_delay_seconds,
        chunk_write_max_retries=settings.chunk_write_max_retries,
        chunk_write_retry_delay_seconds=settings.chunk_write_retry_delay_seconds,
        chunk_write_max_global_failures=settings.chunk_write_max_global_failures,
        chunk_writer_idle_poll_seconds=settings.chunk_writer_idle_poll_seconds,
    )


def build_worker(settings: Settings) -> RecordingWorker:
    """Compose the worker object graph."""

    storage_provider = _build_storage_provider(settings)
    job_store = JobStore(
        max_attempts=settings.job_max_attempts,
        retry_backoff_seconds=settings.job_retry_backoff_seconds,
        drain_poll_seconds=settings.job_drain_poll_seconds,
    )
    job_factory = build_job_factory(settings, storage_provider)

    queue = _build_message_queue(settings)
    consumer = (
        None
        if queue is None
        else JobQueueConsumer(
            queue=queue,
            job_store=job_store,
            job_factory=job_factory,
            poll_timeout_seconds=settings.queue_poll_timeout_seconds,
            rejected_backoff_seconds=settings.queue_rejected_backoff_seconds,
        )
    )

    return RecordingWorker(
        job_store=job_store,
        job_factory=job_factory,
        storage_provider=storage_provider,
        consumer=consumer,
    )


__all__ = ["build_job_factory", "build_worker"]
