from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime

import httpx
import pytest

from recording_worker.domain.errors import UploadBackendError, UploadSessionInvalidatedError
from recording_worker.domain.uploads import MultipartUpload, UploadedPart, UploadTarget
from recording_worker.infrastructure.uploads import FileServiceUploadBackend, format_recording_time

BASE_URL = "https://files.example.com/v2"
TARGET = UploadTarget(
    team_id="team-1",
    key="recording.webm",
    name_prefix="Google Meet Recording",
    bot_id="bot-7",
    timezone="Europe/Berlin",
)
UPLOAD = MultipartUpload(file_id="file-1", upload_id="upload-1", key="recording.webm")

NO_SUCH_UPLOAD_XML = (
    "<?xml version='1.0' encoding='UTF-8'?><Error><Code>NoSuchUpload</Code>"
    "<Message>The requested upload was not found.</Message></Error>"
)


def _backend(handler) -> FileServiceUploadBackend:
    return FileServiceUploadBackend(
        base_url=f"{BASE_URL}/",
        bearer_token="secret-token",
        transport=httpx.MockTransport(handler),
    )


def test_initialize_upload_calls_init_endpoint_with_bearer_token() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": {"fileId": "file-1", "uploadId": "upload-1"}})

    upload = asyncio.run(_backend(handler).initialize_upload(TARGET))

    assert upload == MultipartUpload(file_id="file-1", upload_id="upload-1", key="recording.webm")
    request = requests[0]
    assert request.method == "PUT"
    assert str(request.url) == f"{BASE_URL}/files/upload/multipart/init/team-1/private"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert json.loads(request.content) == {"contentType": "video/webm"}


def test_upload_part_requests_url_then_puts_bytes() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.host == "files.example.com":
            return httpx.Response(
                200,
                json={"data": {"uploadUrl": "https://bucket.example.com/part?sig=abc"}},
            )
        return httpx.Response(200, headers={"ETag": '"etag-3"'})

    part = asyncio.run(_backend(handler).upload_part(TARGET, UPLOAD, 3, b"chunk-bytes"))

    assert part == UploadedPart(part_number=3, size_bytes=11, etag='"etag-3"')
    url_request, part_request = requests
    assert str(url_request.url) == (
        f"{BASE_URL}/files/upload/multipart/url/team-1/private/file-1/upload-1/3"
    )
    assert part_request.method == "PUT"
    assert str(part_request.url) == "https://bucket.example.com/part?sig=abc"
    assert part_request.content == b"chunk-bytes"
    assert part_request.headers["Content-Type"] == "video/webm"
    assert "Authorization" not in part_request.headers


def test_upload_part_without_upload_url_fails() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {}})

    with pytest.raises(UploadBackendError, match="No upload URL"):
        asyncio.run(_backend(handler).upload_part(TARGET, UPLOAD, 1, b"x"))


def test_no_such_upload_response_invalidates_session() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "files.example.com":
            return httpx.Response(200, json={"data": {"uploadUrl": "https://bucket.example.com/p"}})
        return httpx.Response(404, text=NO_SUCH_UPLOAD_XML)

    with pytest.raises(UploadSessionInvalidatedError):
        asyncio.run(_backend(handler).upload_part(TARGET, UPLOAD, 1, b"x"))


def test_server_error_raises_backend_error_with_detail() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "storage unavailable"})

    with pytest.raises(UploadBackendError, match="500 storage unavailable") as exc_info:
        asyncio.run(_backend(handler).initialize_upload(TARGET))

    assert not isinstance(exc_info.value, UploadSessionInvalidatedError)


def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UploadBackendError, match="connection refused"):
        asyncio.run(_backend(handler).initialize_upload(TARGET))


def test_finalize_upload_names_recording_and_returns_stored_file() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": {"file": {"id": "file-1", "name": body["file"]["name"]}}},
        )

    parts = [UploadedPart(1, 1000, "a"), UploadedPart(2, 500, "b")]
    stored = asyncio.run(_backend(handler).finalize_upload(TARGET, UPLOAD, parts))

    request = requests[0]
    assert str(request.url) == (
        f"{BASE_URL}/files/upload/multipart/finalize/team-1/private/file-1/upload-1"
    )
    payload = json.loads(request.content)["file"]
    assert payload["contentType"] == "video/webm"
    assert payload["botId"] == "bot-7"
    assert payload["name"].startswith("Google Meet Recording ")
    assert stored.file_id == "file-1"
    assert stored.name == payload["name"]
    assert stored.size_bytes == 1500
    assert stored.parts == 2


def test_format_recording_time_uses_team_timezone() -> None:
    moment = datetime(2026, 10, 19, 15, 5, tzinfo=UTC)

    assert format_recording_time("America/New_York", moment) == "11:05am Oct 19 2026"
    assert format_recording_time("UTC", moment) == "3:05pm Oct 19 2026"
    assert format_recording_time("UTC", datetime(2026, 1, 2, 0, 7, tzinfo=UTC)) == (
        "12:07am Jan 02 2026"
    )


def test_format_recording_time_falls_back_to_utc_for_unknown_zone() -> None:
    moment = datetime(2026, 10, 19, 15, 5, tzinfo=UTC)

    assert format_recording_time("Mars/Olympus_Mons", moment) == "3:05pm Oct 19 2026"
