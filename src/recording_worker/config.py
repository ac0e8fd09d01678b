"""Application settings."""

from enum import StrEnum
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(StrEnum):
    """Available storage provider adapters."""

    S3 = "s3"
    AZURE = "azure"


class UploadBackendKind(StrEnum):
    """Where finished recordings are sent by the multipart pipeline."""

    FILE_SERVICE = "file_service"
    STORAGE = "storage"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Recording Worker"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"

    staging_root: Path = Path("dist/_tempvideo")
    chunk_write_max_retries: int = 3
    chunk_write_retry_delay_seconds: float = 0.25
    chunk_write_max_global_failures: int = 5
    chunk_writer_idle_poll_seconds: float = 0.5

    upload_backend: UploadBackendKind = UploadBackendKind.FILE_SERVICE
    upload_part_size_mb: int = 50
    upload_part_max_attempts: int = 3
    upload_part_retry_base_delay_seconds: float = 0.5
    upload_max_file_attempts: int = 3

    job_max_attempts: int = 3
    job_retry_backoff_seconds: float = 30.0
    job_drain_poll_seconds: float = 1.0

    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_queue_name: str = "jobs:meetbot:list"
    redis_client_name: str = "backend-meetbot"
    queue_poll_timeout_seconds: int = 10
    queue_rejected_backoff_seconds: float = 1.0

    storage_provider: StorageBackend = StorageBackend.S3
    s3_region: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_bucket_name: str | None = None
    s3_endpoint: str | None = None
    s3_force_path_style: bool = False
    s3_signed_url_ttl_seconds: int = 3600
    azure_connection_string: str | None = None
    azure_account_name: str | None = None
    azure_account_key: str | None = None
    azure_sas_token: str | None = None
    azure_container: str | None = None
    azure_upload_concurrency: int = 4
    azure_signed_url_ttl_seconds: int = 3600
    storage_key_prefix: str = "meeting-bot"

    file_service_base_url: str = "http://localhost:8081/v2"
    file_service_timeout_seconds: float = 60.0

    max_recording_duration_minutes: int = 180
    recorder_timeout_seconds: float = 30.0

    @model_validator(mode="after")
    def validate_runtime_settings(self) -> "Settings":
        """Ensure numeric limits and backend-specific settings are valid."""

        if self.upload_part_size_mb < 5:
            raise ValueError("RECWORKER_UPLOAD_PART_SIZE_MB must be >= 5.")
        if self.upload_part_max_attempts < 1:
            raise ValueError("RECWORKER_UPLOAD_PART_MAX_ATTEMPTS must be >= 1.")
        if self.upload_max_file_attempts < 1:
            raise ValueError("RECWORKER_UPLOAD_MAX_FILE_ATTEMPTS must be >= 1.")
        if self.upload_part_retry_base_delay_seconds < 0:
            raise ValueError("RECWORKER_UPLOAD_PART_RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if self.job_max_attempts < 1:
            raise ValueError("RECWORKER_JOB_MAX_ATTEMPTS must be >= 1.")
        if self.job_retry_backoff_seconds < 0:
            raise ValueError("RECWORKER_JOB_RETRY_BACKOFF_SECONDS must be >= 0.")
        if self.job_drain_poll_seconds <= 0:
            raise ValueError("RECWORKER_JOB_DRAIN_POLL_SECONDS must be > 0.")
        if self.chunk_write_max_retries < 0:
            raise ValueError("RECWORKER_CHUNK_WRITE_MAX_RETRIES must be >= 0.")
        if self.chunk_write_max_global_failures < 1:
            raise ValueError("RECWORKER_CHUNK_WRITE_MAX_GLOBAL_FAILURES must be >= 1.")
        if self.chunk_writer_idle_poll_seconds <= 0:
            raise ValueError("RECWORKER_CHUNK_WRITER_IDLE_POLL_SECONDS must be > 0.")
        if self.queue_poll_timeout_seconds < 1:
            raise ValueError("RECWORKER_QUEUE_POLL_TIMEOUT_SECONDS must be >= 1.")
        if self.redis_enabled and not self.redis_url.strip():
            raise ValueError(
                "RECWORKER_REDIS_URL is required when RECWORKER_REDIS_ENABLED=true."
            )
        if self.file_service_timeout_seconds <= 0:
            raise ValueError("RECWORKER_FILE_SERVICE_TIMEOUT_SECONDS must be > 0.")
        if self.azure_upload_concurrency < 1:
            raise ValueError("RECWORKER_AZURE_UPLOAD_CONCURRENCY must be >= 1.")
        if self.max_recording_duration_minutes < 1:
            raise ValueError("RECWORKER_MAX_RECORDING_DURATION_MINUTES must be >= 1.")
        return self

    @property
    def upload_part_size_bytes(self) -> int:
        """Multipart window size in bytes."""

        return self.upload_part_size_mb * 1024 * 1024

    model_config = SettingsConfigDict(env_prefix="RECWORKER_", extra="ignore")


__all__ = ["Settings", "StorageBackend", "UploadBackendKind"]
