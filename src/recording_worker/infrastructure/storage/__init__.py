"""Cloud storage provider adapters."""

from recording_worker.infrastructure.storage.azure_blob_storage_provider import (
    AzureBlobStorageProvider,
)
from recording_worker.infrastructure.storage.factory import build_storage_provider
from recording_worker.infrastructure.storage.s3_storage_provider import S3StorageProvider

__all__ = ["AzureBlobStorageProvider", "S3StorageProvider", "build_storage_provider"]
