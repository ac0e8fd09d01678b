"""Upload models shared by the multipart pipeline and storage backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

DEFAULT_CONTENT_TYPE = "video/webm"
DEFAULT_FOLDER_ID = "private"


class UploadSessionState(StrEnum):
    """Lifecycle states of one multipart upload session."""

    UNINITIALIZED = "UNINITIALIZED"
    CONNECTED = "CONNECTED"
    PART_UPLOADING = "PART_UPLOADING"
    FINALIZED = "FINALIZED"
    ABORTED = "ABORTED"


@dataclass(slots=True, frozen=True)
class UploadTarget:
    """Where and how a staged recording should be stored."""

    team_id: str
    key: str
    folder_id: str = DEFAULT_FOLDER_ID
    content_type: str = DEFAULT_CONTENT_TYPE
    name_prefix: str = "Recording"
    bot_id: str = ""
    timezone: str = "UTC"


@dataclass(slots=True, frozen=True)
class MultipartUpload:
    """Backend identifiers of an initialized multipart upload."""

    file_id: str
    upload_id: str
    key: str


@dataclass(slots=True, frozen=True)
class UploadedPart:
    """One part confirmed by the backend."""

    part_number: int
    size_bytes: int
    etag: str | None = None


@dataclass(slots=True, frozen=True)
class StoredRecording:
    """Cloud object record returned once a multipart upload is finalized."""

    file_id: str
    key: str
    name: str | None = None
    size_bytes: int = 0
    parts: int = 0
    metadata: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class UploadOptions:
    """Whole-file upload request for a storage provider."""

    file_path: Path
    key: str
    content_type: str = DEFAULT_CONTENT_TYPE
    part_size: int | None = None
    concurrency: int | None = None


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_FOLDER_ID",
    "MultipartUpload",
    "StoredRecording",
    "UploadOptions",
    "UploadSessionState",
    "UploadTarget",
    "UploadedPart",
]
