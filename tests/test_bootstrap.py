from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from recording_worker.application.services import JobQueueConsumer
from recording_worker.bootstrap import build_worker
from recording_worker.config import Settings, StorageBackend, UploadBackendKind
from recording_worker.domain.errors import StorageConfigurationError
from recording_worker.domain.jobs import JobRequest, MeetingProvider
from recording_worker.infrastructure.queues import RedisMessageQueue
from recording_worker.infrastructure.storage import (
    AzureBlobStorageProvider,
    S3StorageProvider,
    build_storage_provider,
)
from recording_worker.infrastructure.uploads import FileServiceUploadBackend

REQUEST = JobRequest(
    bearer_token="user-token",
    url="https://meet.google.com/abc",
    name="Recorder",
    team_id="team-1",
    user_id="user-1",
    provider=MeetingProvider.GOOGLE,
)


def test_build_worker_uses_file_service_backend_and_http_only_by_default() -> None:
    worker = build_worker(Settings())

    backend = worker.job_factory._backend_factory(REQUEST)

    assert worker.consumer is None
    assert worker.storage_provider is None
    assert isinstance(backend, FileServiceUploadBackend)
    assert backend._bearer_token == "user-token"


def test_build_worker_shares_storage_provider_when_configured() -> None:
    settings = Settings(
        upload_backend=UploadBackendKind.STORAGE,
        storage_provider=StorageBackend.AZURE,
        azure_connection_string="UseDevelopmentStorage=true",
        azure_container="recordings",
    )
    worker = build_worker(settings)

    assert isinstance(worker.storage_provider, AzureBlobStorageProvider)
    assert worker.job_factory._backend_factory(REQUEST) is worker.storage_provider


def test_build_worker_consumes_redis_queue_when_enabled() -> None:
    settings = Settings(redis_enabled=True, redis_queue_name="jobs:test:list")
    worker = build_worker(settings)

    assert isinstance(worker.consumer, JobQueueConsumer)
    assert isinstance(worker.consumer._queue, RedisMessageQueue)
    assert worker.consumer._queue.queue_name == "jobs:test:list"


def test_build_storage_provider_defaults_to_s3() -> None:
    assert isinstance(build_storage_provider(Settings()), S3StorageProvider)
    assert isinstance(
        build_storage_provider(Settings(storage_provider=StorageBackend.AZURE)),
        AzureBlobStorageProvider,
    )


def test_worker_start_rejects_incomplete_storage_settings() -> None:
    worker = build_worker(Settings(upload_backend=UploadBackendKind.STORAGE))

    with pytest.raises(StorageConfigurationError, match="RECWORKER_S3_BUCKET_NAME"):
        asyncio.run(worker.start())


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECWORKER_STORAGE_PROVIDER", "azure")
    monkeypatch.setenv("RECWORKER_UPLOAD_PART_SIZE_MB", "8")

    settings = Settings()

    assert settings.storage_provider is StorageBackend.AZURE
    assert settings.upload_part_size_bytes == 8 * 1024 * 1024


def test_settings_require_minimum_part_size() -> None:
    with pytest.raises(ValidationError):
        Settings(upload_part_size_mb=4)


def test_settings_require_at_least_one_job_attempt() -> None:
    with pytest.raises(ValidationError):
        Settings(job_max_attempts=0)


def test_settings_require_positive_queue_poll_timeout() -> None:
    with pytest.raises(ValidationError):
        Settings(queue_poll_timeout_seconds=0)


def test_settings_require_redis_url_when_redis_is_enabled() -> None:
    with pytest.raises(ValidationError):
        Settings(redis_enabled=True, redis_url="  ")
