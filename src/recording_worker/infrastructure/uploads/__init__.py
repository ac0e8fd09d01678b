"""Multipart upload pipeline and its file-service backend."""

from recording_worker.infrastructure.uploads.file_service_backend import (
    FileServiceUploadBackend,
    format_recording_time,
)
from recording_worker.infrastructure.uploads.resilience import (
    retry_action_with_wait,
    retry_with_resilience,
)
from recording_worker.infrastructure.uploads.upload_session import (
    StagedFileUploader,
    UploadSession,
    read_window,
)

__all__ = [
    "FileServiceUploadBackend",
    "StagedFileUploader",
    "UploadSession",
    "format_recording_time",
    "read_window",
    "retry_action_with_wait",
    "retry_with_resilience",
]
