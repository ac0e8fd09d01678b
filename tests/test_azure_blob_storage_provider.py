from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from recording_worker.domain.errors import (
    StorageConfigurationError,
    UploadBackendError,
    UploadSessionInvalidatedError,
)
from recording_worker.domain.uploads import UploadOptions, UploadTarget
from recording_worker.infrastructure.storage import AzureBlobStorageProvider
from recording_worker.infrastructure.storage.azure_blob_storage_provider import block_id_for

ACCOUNT_URL = "https://recordings.blob.core.windows.net"


@dataclass(slots=True)
class FakeBlobItem:
    name: str


class FakeBlobClient:
    def __init__(self, container: FakeContainerClient, key: str) -> None:
        self._container = container
        self._key = key
        self.url = f"{ACCOUNT_URL}/{container.name}/{key}"

    def exists(self) -> bool:
        return self._key in self._container.blobs

    def upload_blob(self, data: Any, **kwargs: Any) -> dict[str, Any]:
        self._container.blobs[self._key] = data.read()
        self._container.upload_kwargs.append(kwargs)
        return {}

    def stage_block(self, block_id: str, data: bytes, length: int | None = None) -> None:
        if self._container.stage_error is not None:
            raise self._container.stage_error
        self._container.staged[block_id] = data

    def commit_block_list(self, block_list: list[Any], **kwargs: Any) -> dict[str, Any]:
        block_ids = [block.id for block in block_list]
        missing = [block_id for block_id in block_ids if block_id not in self._container.staged]
        if missing:
            error = HttpResponseError(message="The specified block list is invalid.")
            error.error_code = "InvalidBlockList"
            raise error
        self._container.blobs[self._key] = b"".join(
            self._container.staged[block_id] for block_id in block_ids
        )
        self._container.commits.append({"block_ids": block_ids, **kwargs})
        return {"etag": '"0x8D"'}


class FakeContainerClient:
    def __init__(self, name: str) -> None:
        self.name = name
        self.blobs: dict[str, bytes] = {}
        self.staged: dict[str, bytes] = {}
        self.commits: list[dict[str, Any]] = []
        self.upload_kwargs: list[dict[str, Any]] = []
        self.deleted: list[tuple[str, dict[str, Any]]] = []
        self.stage_error: Exception | None = None

    def get_blob_client(self, key: str) -> FakeBlobClient:
        return FakeBlobClient(self, key)

    def delete_blob(self, key: str, **kwargs: Any) -> None:
        self.deleted.append((key, kwargs))
        self.blobs.pop(key, None)

    def list_blobs(self, name_starts_with: str | None = None) -> list[FakeBlobItem]:
        prefix = name_starts_with or ""
        return [FakeBlobItem(name) for name in sorted(self.blobs) if name.startswith(prefix)]


class FakeBlobServiceClient:
    def __init__(self) -> None:
        self.containers: dict[str, FakeContainerClient] = {}
        self.credential: Any = None

    def get_container_client(self, name: str) -> FakeContainerClient:
        return self.containers.setdefault(name, FakeContainerClient(name))


def _provider(
    service: FakeBlobServiceClient,
    **overrides: Any,
) -> AzureBlobStorageProvider:
    settings: dict[str, Any] = {
        "container": "meeting-recordings",
        "account_name": "recordings",
        "sas_token": "?sv=2024-01-01&sig=abc",
    }
    settings.update(overrides)
    return AzureBlobStorageProvider(service_client_factory=lambda: service, **settings)


TARGET = UploadTarget(team_id="team-1", key="team-1/user-1/rec.webm", bot_id="bot-3")


def test_validate_config_requires_credentials_and_container() -> None:
    with pytest.raises(StorageConfigurationError, match="RECWORKER_AZURE_CONNECTION_STRING"):
        AzureBlobStorageProvider(container="c", account_name="acct").validate_config()
    with pytest.raises(StorageConfigurationError, match="RECWORKER_AZURE_CONTAINER"):
        AzureBlobStorageProvider(connection_string="UseDevelopmentStorage=true").validate_config()

    AzureBlobStorageProvider(container="c", account_name="acct", account_key="a2V5").validate_config()
    assert _provider(FakeBlobServiceClient()).name == "azure"


def test_multipart_upload_stages_blocks_and_commits_in_part_order() -> None:
    service = FakeBlobServiceClient()
    provider = _provider(service)

    async def scenario() -> None:
        upload = await provider.initialize_upload(TARGET)
        second = await provider.upload_part(TARGET, upload, 2, b"world")
        first = await provider.upload_part(TARGET, upload, 1, b"hello ")
        stored = await provider.finalize_upload(TARGET, upload, [second, first])
        assert stored.size_bytes == 11
        assert stored.parts == 2
        assert first.etag == block_id_for(upload.upload_id, 1)

    asyncio.run(scenario())

    container = service.containers["meeting-recordings"]
    assert container.blobs[TARGET.key] == b"hello world"
    commit = container.commits[0]
    assert commit["content_settings"].content_type == "video/webm"
    assert commit["metadata"] == {"team_id": "team-1", "bot_id": "bot-3"}


def test_invalid_block_list_invalidates_session() -> None:
    service = FakeBlobServiceClient()
    provider = _provider(service)

    async def scenario() -> None:
        upload = await provider.initialize_upload(TARGET)
        part = await provider.upload_part(TARGET, upload, 1, b"data")
        service.containers["meeting-recordings"].staged.clear()
        await provider.finalize_upload(TARGET, upload, [part])

    with pytest.raises(UploadSessionInvalidatedError):
        asyncio.run(scenario())


def test_other_azure_errors_map_to_backend_error() -> None:
    service = FakeBlobServiceClient()
    provider = _provider(service)
    service.get_container_client("meeting-recordings").stage_error = ServiceRequestError(
        "connection reset"
    )

    async def scenario() -> None:
        upload = await provider.initialize_upload(TARGET)
        await provider.upload_part(TARGET, upload, 1, b"data")

    with pytest.raises(UploadBackendError, match="connection reset") as exc_info:
        asyncio.run(scenario())

    assert not isinstance(exc_info.value, UploadSessionInvalidatedError)


def test_block_ids_have_equal_length_for_every_part() -> None:
    ids = [block_id_for("0123abcd", part) for part in (1, 9, 10, 9999)]

    assert len({len(block_id) for block_id in ids}) == 1
    assert base64.b64decode(ids[0]).decode("ascii") == "0123abcd-00000001"


def test_upload_file_uploads_whole_blob(tmp_path: Path) -> None:
    service = FakeBlobServiceClient()
    path = tmp_path / "rec.webm"
    path.write_bytes(b"video")

    succeeded = asyncio.run(
        _provider(service, upload_concurrency=3).upload_file(UploadOptions(path, "rec.webm"))
    )

    container = service.containers["meeting-recordings"]
    assert succeeded is True
    assert container.blobs["rec.webm"] == b"video"
    assert container.upload_kwargs[0]["overwrite"] is True
    assert container.upload_kwargs[0]["max_concurrency"] == 3


def test_signed_url_appends_configured_sas_token() -> None:
    url = asyncio.run(_provider(FakeBlobServiceClient()).get_signed_url("a/rec.webm"))

    assert url == f"{ACCOUNT_URL}/meeting-recordings/a/rec.webm?sv=2024-01-01&sig=abc"


def test_signed_url_generates_read_sas_from_account_key() -> None:
    provider = _provider(FakeBlobServiceClient(), sas_token=None, account_key="a2V5")

    url = asyncio.run(provider.get_signed_url("rec.webm", expires_in_seconds=60))

    base, query = url.split("?", 1)
    assert base == f"{ACCOUNT_URL}/meeting-recordings/rec.webm"
    assert "sp=r" in query
    assert "sig=" in query


def test_signed_url_uses_account_key_from_connection_string_credential() -> None:
    service = FakeBlobServiceClient()
    service.credential = SimpleNamespace(account_name="recordings", account_key="a2V5")
    provider = _provider(
        service,
        account_name=None,
        sas_token=None,
        connection_string="DefaultEndpointsProtocol=https;AccountName=recordings;AccountKey=a2V5",
    )

    url = asyncio.run(provider.get_signed_url("rec.webm"))

    base, query = url.split("?", 1)
    assert base == f"{ACCOUNT_URL}/meeting-recordings/rec.webm"
    assert "sp=r" in query
    assert "sig=" in query


def test_signed_url_without_signing_material_raises() -> None:
    provider = _provider(
        FakeBlobServiceClient(),
        account_name=None,
        sas_token=None,
        connection_string="BlobEndpoint=https://recordings.blob.core.windows.net",
    )

    with pytest.raises(StorageConfigurationError, match="Unable to generate SAS URL"):
        asyncio.run(provider.get_signed_url("rec.webm"))


def test_exists_delete_and_list() -> None:
    service = FakeBlobServiceClient()
    container = service.get_container_client("meeting-recordings")
    container.blobs.update({"a/1": b"", "a/2": b"", "b/1": b""})
    provider = _provider(service)

    async def scenario() -> tuple[bool, list[str], bool]:
        listed = await provider.list("a/")
        await provider.delete("a/1")
        return await provider.exists("a/2"), listed, await provider.exists("a/1")

    present, listed, deleted_present = asyncio.run(scenario())

    assert present is True
    assert listed == ["a/1", "a/2"]
    assert deleted_present is False
    assert container.deleted == [("a/1", {"delete_snapshots": "include"})]
