"""Azure Blob storage provider backed by azure-storage-blob."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from azure.core.exceptions import AzureError, HttpResponseError
from azure.storage.blob import (
    BlobBlock,
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)

from recording_worker.domain.errors import (
    StorageConfigurationError,
    UploadBackendError,
    UploadSessionInvalidatedError,
    describe_error,
)
from recording_worker.domain.ports import StorageProviderName
from recording_worker.domain.uploads import (
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadOptions,
    UploadTarget,
)

_DEFAULT_CONCURRENCY = 4
_INVALIDATED_ERROR_CODES = {"InvalidBlockList", "BlobNotFound"}

logger = logging.getLogger(__name__)

BlobServiceClientFactory = Callable[[], BlobServiceClient]


class AzureBlobStorageProvider:
    """Storage adapter for Azure Blob containers.

    Credentials are resolved in order: connection string, account name plus
    SAS token, account name plus account key. Multipart uploads stage one
    block per part and commit the block list on finalize; uncommitted blocks
    are garbage-collected by the service.
    """

    def __init__(
        self,
        container: str | None = None,
        connection_string: str | None = None,
        account_name: str | None = None,
        account_key: str | None = None,
        sas_token: str | None = None,
        upload_concurrency: int = _DEFAULT_CONCURRENCY,
        signed_url_ttl_seconds: int = 3600,
        service_client_factory: BlobServiceClientFactory | None = None,
    ) -> None:
        self._container = container
        self._connection_string = connection_string
        self._account_name = account_name
        self._account_key = account_key
        self._sas_token = sas_token
        self._upload_concurrency = max(1, upload_concurrency)
        self._signed_url_ttl_seconds = signed_url_ttl_seconds
        self._service_client_factory = service_client_factory or self._build_service_client
        self._service_client: BlobServiceClient | None = None

    @property
    def name(self) -> StorageProviderName:
        return "azure"

    def validate_config(self) -> None:
        """Require one complete credential set and a container name."""

        has_credentials = bool(self._connection_string) or bool(
            self._account_name and (self._sas_token or self._account_key)
        )
        if not has_credentials:
            raise StorageConfigurationError(
                "Azure Blob Storage configuration incomplete. Provide "
                "RECWORKER_AZURE_CONNECTION_STRING or RECWORKER_AZURE_ACCOUNT_NAME with "
                "RECWORKER_AZURE_SAS_TOKEN or RECWORKER_AZURE_ACCOUNT_KEY."
            )
        if not self._container:
            raise StorageConfigurationError("RECWORKER_AZURE_CONTAINER is required.")

    async def upload_file(self, options: UploadOptions) -> bool:
        """Upload a local file as a block blob with parallel block uploads."""

        blob_client = self._blob_client(options.key)
        concurrency = options.concurrency or self._upload_concurrency
        logger.info("Starting Azure Blob upload for %s", options.key)
        try:
            await asyncio.to_thread(
                self._upload_local_file,
                blob_client,
                options,
                concurrency,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Azure upload failed for %s: %s", options.key, describe_error(exc))
            return False
        logger.info("Azure upload complete for %s", options.key)
        return True

    async def get_signed_url(
        self,
        key: str,
        expires_in_seconds: int | None = None,
        content_type: str | None = None,
    ) -> str:
        """Return a read URL, generating a blob SAS when an account key is known."""

        blob_client = self._blob_client(key)
        base_url = str(blob_client.url).split("?", 1)[0]
        ttl_seconds = expires_in_seconds or self._signed_url_ttl_seconds

        account_name, account_key = self._signing_key()
        if account_name and account_key:
            sas = generate_blob_sas(
                account_name=account_name,
                container_name=self._require_container(),
                blob_name=key,
                account_key=account_key,
                permission=BlobSasPermissions(read=True),
                expiry=datetime.now(UTC) + timedelta(seconds=ttl_seconds),
                protocol="https",
                content_type=content_type,
            )
            return f"{base_url}?{sas}"

        if self._sas_token:
            return f"{base_url}?{self._sas_token.lstrip('?')}"

        raise StorageConfigurationError(
            "Unable to generate SAS URL: provide an account key or a SAS token."
        )

    async def exists(self, key: str) -> bool:
        blob_client = self._blob_client(key)
        return bool(await asyncio.to_thread(blob_client.exists))

    async def delete(self, key: str) -> None:
        container_client = self._container_client()
        await asyncio.to_thread(container_client.delete_blob, key, delete_snapshots="include")

    async def list(self, prefix: str) -> list[str]:
        container_client = self._container_client()

        def collect() -> list[str]:
            return [blob.name for blob in container_client.list_blobs(name_starts_with=prefix)]

        return await asyncio.to_thread(collect)

    async def initialize_upload(self, target: UploadTarget) -> MultipartUpload:
        """Open a client-side block namespace; nothing is sent until the first part."""

        self._require_container()
        upload_id = uuid4().hex
        logger.info("Opened Azure block upload %s for %s", upload_id, target.key)
        return MultipartUpload(file_id=target.key, upload_id=upload_id, key=target.key)

    async def upload_part(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        part_number: int,
        data: bytes,
    ) -> UploadedPart:
        blob_client = self._blob_client(upload.key)
        block_id = block_id_for(upload.upload_id, part_number)
        try:
            await asyncio.to_thread(
                blob_client.stage_block,
                block_id=block_id,
                data=data,
                length=len(data),
            )
        except AzureError as exc:
            raise self._translate_error("stage_block", exc) from exc
        return UploadedPart(part_number=part_number, size_bytes=len(data), etag=block_id)

    async def finalize_upload(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        parts: list[UploadedPart],
    ) -> StoredRecording:
        blob_client = self._blob_client(upload.key)
        ordered_parts = sorted(parts, key=lambda item: item.part_number)
        block_list = [
            BlobBlock(block_id=block_id_for(upload.upload_id, part.part_number))
            for part in ordered_parts
        ]
        try:
            response = await asyncio.to_thread(
                blob_client.commit_block_list,
                block_list,
                content_settings=ContentSettings(content_type=target.content_type),
                metadata={"team_id": target.team_id, "bot_id": target.bot_id},
            )
        except AzureError as exc:
            raise self._translate_error("commit_block_list", exc) from exc

        metadata: dict[str, Any] = dict(response) if isinstance(response, dict) else {}
        return StoredRecording(
            file_id=upload.file_id,
            key=upload.key,
            name=upload.key.rsplit("/", 1)[-1],
            size_bytes=sum(part.size_bytes for part in parts),
            parts=len(parts),
            metadata=metadata,
        )

    async def abort_upload(self, target: UploadTarget, upload: MultipartUpload) -> None:
        """Uncommitted blocks expire on the service; there is nothing to cancel."""

        logger.info(
            "Leaving uncommitted blocks of upload %s for %s to expire.",
            upload.upload_id,
            upload.key,
        )

    def _upload_local_file(
        self,
        blob_client: Any,
        options: UploadOptions,
        concurrency: int,
    ) -> None:
        with options.file_path.open("rb") as handle:
            blob_client.upload_blob(
                handle,
                overwrite=True,
                content_settings=ContentSettings(content_type=options.content_type),
                max_concurrency=concurrency,
            )

    def _translate_error(self, operation: str, exc: AzureError) -> UploadBackendError:
        error_code = getattr(exc, "error_code", None)
        if isinstance(exc, HttpResponseError) and error_code in _INVALIDATED_ERROR_CODES:
            logger.error("Critical: %s returned %s", operation, error_code)
            return UploadSessionInvalidatedError(f"{operation} failed: {error_code}")
        return UploadBackendError(f"{operation} failed: {describe_error(exc)}")

    def _blob_client(self, key: str) -> Any:
        return self._container_client().get_blob_client(key)

    def _container_client(self) -> Any:
        return self._get_service_client().get_container_client(self._require_container())

    def _signing_key(self) -> tuple[str | None, str | None]:
        """Return the account name and key able to sign a SAS, if any is known.

        A connection string carrying `AccountKey` leaves a shared key credential
        on the service client.
        """

        if self._account_name and self._account_key:
            return self._account_name, self._account_key
        if not self._connection_string:
            return None, None

        credential = getattr(self._get_service_client(), "credential", None)
        account_name = getattr(credential, "account_name", None)
        account_key = getattr(credential, "account_key", None)
        if account_name and account_key:
            return account_name, account_key
        return None, None

    def _require_container(self) -> str:
        if not self._container:
            raise StorageConfigurationError("RECWORKER_AZURE_CONTAINER is required.")
        return self._container

    def _get_service_client(self) -> BlobServiceClient:
        if self._service_client is None:
            self._service_client = self._service_client_factory()
        return self._service_client

    def _build_service_client(self) -> BlobServiceClient:
        if self._connection_string:
            return BlobServiceClient.from_connection_string(self._connection_string)

        if self._account_name:
            account_url = f"https://{self._account_name}.blob.core.windows.net"
            if self._sas_token:
                return BlobServiceClient(account_url, credential=self._sas_token.lstrip("?"))
            if self._account_key:
                return BlobServiceClient(
                    account_url,
                    credential={
                        "account_name": self._account_name,
                        "account_key": self._account_key,
                    },
                )

        raise StorageConfigurationError(
            "Azure Blob Storage configuration incomplete. Provide connection string "
            "OR (account+sas/account+key)."
        )


def block_id_for(upload_id: str, part_number: int) -> str:
    """Return the base64 block id of one part; equal length for every part of an upload."""

    raw = f"{upload_id}-{part_number:08d}"
    return base64.b64encode(raw.encode("ascii")).decode("ascii")


__all__ = ["AzureBlobStorageProvider", "BlobServiceClientFactory", "block_id_for"]
