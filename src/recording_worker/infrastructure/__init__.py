"""Infrastructure layer public API."""

from recording_worker.infrastructure.queues import InMemoryMessageQueue, RedisMessageQueue
from recording_worker.infrastructure.recorders import HttpStreamRecorder
from recording_worker.infrastructure.staging import ChunkWriter
from recording_worker.infrastructure.storage import (
    AzureBlobStorageProvider,
    S3StorageProvider,
    build_storage_provider,
)
from recording_worker.infrastructure.uploads import (
    FileServiceUploadBackend,
    StagedFileUploader,
    UploadSession,
)

__all__ = [
    "AzureBlobStorageProvider",
    "ChunkWriter",
    "FileServiceUploadBackend",
    "HttpStreamRecorder",
    "InMemoryMessageQueue",
    "RedisMessageQueue",
    "S3StorageProvider",
    "StagedFileUploader",
    "UploadSession",
    "build_storage_provider",
]
