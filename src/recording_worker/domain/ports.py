"""Ports for storage backends, queue transport, and recording producers."""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from recording_worker.domain.jobs import JobRequest
from recording_worker.domain.uploads import (
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadOptions,
    UploadTarget,
)

StorageProviderName = Literal["s3", "azure"]


@runtime_checkable
class MultipartUploadBackend(Protocol):
    """Backend able to assemble one object from sequentially uploaded parts."""

    async def initialize_upload(self, target: UploadTarget) -> MultipartUpload:
        """Start a multipart upload and return its identifiers."""

    async def upload_part(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        part_number: int,
        data: bytes,
    ) -> UploadedPart:
        """Upload one part. Raise `UploadSessionInvalidatedError` for unknown uploads."""

    async def finalize_upload(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        parts: list[UploadedPart],
    ) -> StoredRecording:
        """Complete the multipart upload and return the stored object record."""

    async def abort_upload(self, target: UploadTarget, upload: MultipartUpload) -> None:
        """Discard a multipart upload that will not be completed."""


@runtime_checkable
class StorageProvider(MultipartUploadBackend, Protocol):
    """Durable object storage capability."""

    @property
    def name(self) -> StorageProviderName:
        """Return provider identifier."""

    def validate_config(self) -> None:
        """Raise `StorageConfigurationError` when required settings are missing."""

    async def upload_file(self, options: UploadOptions) -> bool:
        """Upload a local file, returning whether it succeeded."""

    async def get_signed_url(
        self,
        key: str,
        expires_in_seconds: int | None = None,
        content_type: str | None = None,
    ) -> str:
        """Return a time-limited read URL for an object."""

    async def exists(self, key: str) -> bool:
        """Return whether an object exists."""

    async def delete(self, key: str) -> None:
        """Delete an object."""

    async def list(self, prefix: str) -> list[str]:
        """List object keys under a prefix."""


class MessageQueue(Protocol):
    """FIFO queue transport carrying serialized job descriptors."""

    async def dequeue_with_timeout(self, timeout_seconds: float) -> str | None:
        """Pop the head message, waiting up to `timeout_seconds`."""

    async def requeue_to_head(self, message: str) -> None:
        """Return a message to the head of the queue."""

    async def publish(self, message: str) -> None:
        """Append a message to the tail of the queue."""

    async def close(self) -> None:
        """Release transport resources."""


class ChunkSink(Protocol):
    """Receiver of recorded byte chunks."""

    async def save_chunk(self, data: bytes) -> bool:
        """Accept one chunk; never raises."""


class Recorder(Protocol):
    """Producer of a recording byte stream for one job."""

    async def record(self, request: JobRequest, sink: ChunkSink) -> None:
        """Stream the recording of `request` into `sink` until it ends."""


__all__ = [
    "ChunkSink",
    "MessageQueue",
    "MultipartUploadBackend",
    "Recorder",
    "StorageProvider",
    "StorageProviderName",
]
