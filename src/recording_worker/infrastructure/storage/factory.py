"""Storage provider selection."""

from __future__ import annotations

from recording_worker.config import Settings, StorageBackend
from recording_worker.domain.ports import StorageProvider
from recording_worker.infrastructure.storage.azure_blob_storage_provider import (
    AzureBlobStorageProvider,
)
from recording_worker.infrastructure.storage.s3_storage_provider import S3StorageProvider


def build_storage_provider(settings: Settings) -> StorageProvider:
    """Return the configured provider; anything but `azure` selects S3."""

    if settings.storage_provider is StorageBackend.AZURE:
        return AzureBlobStorageProvider(
            container=settings.azure_container,
            connection_string=settings.azure_connection_string,
            account_name=settings.azure_account_name,
            account_key=settings.azure_account_key,
            sas_token=settings.azure_sas_token,
            upload_concurrency=settings.azure_upload_concurrency,
            signed_url_ttl_seconds=settings.azure_signed_url_ttl_seconds,
        )

    return S3StorageProvider(
        region=settings.s3_region,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        bucket=settings.s3_bucket_name,
        endpoint=settings.s3_endpoint,
        force_path_style=settings.s3_force_path_style,
        signed_url_ttl_seconds=settings.s3_signed_url_ttl_seconds,
    )


__all__ = ["build_storage_provider"]
