"""S3-compatible storage provider backed by boto3."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol, cast

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

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

_DEFAULT_PART_SIZE_BYTES = 50 * 1024 * 1024
_DEFAULT_CONCURRENCY = 4
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

logger = logging.getLogger(__name__)


class S3Client(Protocol):
    """Subset of S3 client operations used by the storage provider."""

    def upload_file(
        self,
        Filename: str,
        Bucket: str,
        Key: str,
        ExtraArgs: dict[str, Any] | None = None,
        Config: TransferConfig | None = None,
    ) -> None:
        """Upload a local file with managed multipart transfer."""

    def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: dict[str, Any],
        ExpiresIn: int,
    ) -> str:
        """Return a presigned URL."""

    def head_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Return object metadata."""

    def delete_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        """Delete one object."""

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]:
        """Return one page of object keys."""

    def create_multipart_upload(
        self, *, Bucket: str, Key: str, ContentType: str
    ) -> dict[str, Any]:
        """Start multipart upload."""

    def upload_part(
        self,
        *,
        Bucket: str,
        Key: str,
        UploadId: str,
        PartNumber: int,
        Body: bytes,
    ) -> dict[str, Any]:
        """Upload one multipart segment."""

    def complete_multipart_upload(
        self,
        *,
        Bucket: str,
        Key: str,
        UploadId: str,
        MultipartUpload: dict[str, list[dict[str, str | int]]],
    ) -> dict[str, Any]:
        """Finalize multipart upload."""

    def abort_multipart_upload(self, *, Bucket: str, Key: str, UploadId: str) -> dict[str, Any]:
        """Abort multipart upload."""


class S3StorageProvider:
    """Storage adapter for AWS S3 and S3-compatible object stores.

    - `upload_file` delegates to the boto3 managed transfer.
    - The multipart backend methods drive `create_multipart_upload`,
      `upload_part` and `complete_multipart_upload` directly so the upload
      pipeline controls part sizes and retries.
    """

    def __init__(
        self,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        bucket: str | None = None,
        endpoint: str | None = None,
        force_path_style: bool = False,
        signed_url_ttl_seconds: int = 3600,
        s3_client_factory: Callable[[], S3Client] | None = None,
    ) -> None:
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._bucket = bucket
        self._endpoint = endpoint
        self._force_path_style = force_path_style
        self._signed_url_ttl_seconds = signed_url_ttl_seconds
        self._s3_client_factory = s3_client_factory or self._build_default_s3_client
        self._client: S3Client | None = None

    @property
    def name(self) -> StorageProviderName:
        return "s3"

    def validate_config(self) -> None:
        """Require region, credentials and bucket."""

        missing: list[str] = []
        if not self._region:
            missing.append("RECWORKER_S3_REGION")
        if not self._access_key_id:
            missing.append("RECWORKER_S3_ACCESS_KEY_ID")
        if not self._secret_access_key:
            missing.append("RECWORKER_S3_SECRET_ACCESS_KEY")
        if not self._bucket:
            missing.append("RECWORKER_S3_BUCKET_NAME")
        if missing:
            raise StorageConfigurationError(
                "S3 compatible storage configuration is not set or incomplete. "
                f"Missing: {', '.join(missing)}"
            )

    async def upload_file(self, options: UploadOptions) -> bool:
        """Upload a local file with boto3 managed multipart transfer."""

        client = self._get_client()
        transfer_config = TransferConfig(
            multipart_threshold=options.part_size or _DEFAULT_PART_SIZE_BYTES,
            multipart_chunksize=options.part_size or _DEFAULT_PART_SIZE_BYTES,
            max_concurrency=options.concurrency or _DEFAULT_CONCURRENCY,
        )
        logger.info("Starting upload of %s", options.key)
        try:
            await asyncio.to_thread(
                client.upload_file,
                str(options.file_path),
                self._require_bucket(),
                options.key,
                ExtraArgs={"ContentType": options.content_type},
                Config=transfer_config,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Upload for %s failed: %s", options.key, describe_error(exc))
            return False
        logger.info("Upload of %s complete.", options.key)
        return True

    async def get_signed_url(
        self,
        key: str,
        expires_in_seconds: int | None = None,
        content_type: str | None = None,
    ) -> str:
        """Return a presigned GET URL."""

        params: dict[str, Any] = {"Bucket": self._require_bucket(), "Key": key}
        if content_type:
            params["ResponseContentType"] = content_type
        client = self._get_client()
        return await asyncio.to_thread(
            client.generate_presigned_url,
            "get_object",
            Params=params,
            ExpiresIn=expires_in_seconds or self._signed_url_ttl_seconds,
        )

    async def exists(self, key: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_object, Bucket=self._require_bucket(), Key=key)
        except ClientError as exc:
            if _client_error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise
        return True

    async def delete(self, key: str) -> None:
        client = self._get_client()
        await asyncio.to_thread(client.delete_object, Bucket=self._require_bucket(), Key=key)

    async def list(self, prefix: str) -> list[str]:
        """List every key under `prefix`, following continuation tokens."""

        client = self._get_client()
        keys: list[str] = []
        continuation_token: str | None = None
        while True:
            request: dict[str, Any] = {"Bucket": self._require_bucket(), "Prefix": prefix}
            if continuation_token is not None:
                request["ContinuationToken"] = continuation_token
            page = await asyncio.to_thread(client.list_objects_v2, **request)
            for item in page.get("Contents", []):
                key = item.get("Key")
                if isinstance(key, str):
                    keys.append(key)
            if not page.get("IsTruncated"):
                return keys
            continuation_token = page.get("NextContinuationToken")
            if not continuation_token:
                return keys

    async def initialize_upload(self, target: UploadTarget) -> MultipartUpload:
        client = self._get_client()
        response = await self._call(
            "create_multipart_upload",
            client.create_multipart_upload,
            Bucket=self._require_bucket(),
            Key=target.key,
            ContentType=target.content_type,
        )
        upload_id = response.get("UploadId")
        if not isinstance(upload_id, str):
            raise UploadBackendError("Unable to start multipart upload: missing UploadId.")
        return MultipartUpload(file_id=target.key, upload_id=upload_id, key=target.key)

    async def upload_part(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        part_number: int,
        data: bytes,
    ) -> UploadedPart:
        client = self._get_client()
        response = await self._call(
            "upload_part",
            client.upload_part,
            Bucket=self._require_bucket(),
            Key=upload.key,
            UploadId=upload.upload_id,
            PartNumber=part_number,
            Body=data,
        )
        etag = response.get("ETag")
        if not isinstance(etag, str):
            raise UploadBackendError(f"Missing ETag for uploaded part {part_number}.")
        return UploadedPart(part_number=part_number, size_bytes=len(data), etag=etag)

    async def finalize_upload(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        parts: list[UploadedPart],
    ) -> StoredRecording:
        client = self._get_client()
        completed_parts: list[dict[str, str | int]] = []
        for part in sorted(parts, key=lambda item: item.part_number):
            if part.etag is None:
                raise UploadBackendError(f"Part {part.part_number} has no ETag.")
            completed_parts.append({"ETag": part.etag, "PartNumber": part.part_number})

        response = await self._call(
            "complete_multipart_upload",
            client.complete_multipart_upload,
            Bucket=self._require_bucket(),
            Key=upload.key,
            UploadId=upload.upload_id,
            MultipartUpload={"Parts": completed_parts},
        )
        return StoredRecording(
            file_id=upload.file_id,
            key=upload.key,
            name=upload.key.rsplit("/", 1)[-1],
            size_bytes=sum(part.size_bytes for part in parts),
            parts=len(parts),
            metadata={"location": response.get("Location"), "etag": response.get("ETag")},
        )

    async def abort_upload(self, target: UploadTarget, upload: MultipartUpload) -> None:
        client = self._get_client()
        await self._call(
            "abort_multipart_upload",
            client.abort_multipart_upload,
            Bucket=self._require_bucket(),
            Key=upload.key,
            UploadId=upload.upload_id,
        )

    async def _call(
        self,
        operation: str,
        method: Callable[..., dict[str, Any]],
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(method, **kwargs)
        except ClientError as exc:
            if _client_error_code(exc) == "NoSuchUpload":
                raise UploadSessionInvalidatedError(f"{operation} failed: {exc}") from exc
            raise UploadBackendError(f"{operation} failed: {exc}") from exc
        except BotoCoreError as exc:
            raise UploadBackendError(f"{operation} failed: {exc}") from exc

    def _require_bucket(self) -> str:
        if not self._bucket:
            raise StorageConfigurationError("RECWORKER_S3_BUCKET_NAME is not configured.")
        return self._bucket

    def _get_client(self) -> S3Client:
        if self._client is None:
            self._client = self._s3_client_factory()
        return self._client

    def _build_default_s3_client(self) -> S3Client:
        client_config = Config(s3={"addressing_style": "path"}) if self._force_path_style else None
        client = boto3.client(
            "s3",
            region_name=self._region,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
            endpoint_url=self._endpoint or None,
            config=client_config,
        )
        return cast(S3Client, client)


def _client_error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {})
    return str(error.get("Code", ""))


__all__ = ["S3Client", "S3StorageProvider"]
