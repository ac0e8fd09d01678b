"""HTTP multipart upload backend for the team file service."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from recording_worker.domain.errors import UploadBackendError, UploadSessionInvalidatedError
from recording_worker.domain.uploads import (
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadTarget,
)

_NO_SUCH_UPLOAD_MARKER = "NoSuchUpload"

logger = logging.getLogger(__name__)


def format_recording_time(timezone: str, now: datetime | None = None) -> str:
    """Render `now` as `h:mma MMM DD YYYY` in `timezone`, e.g. `3:05pm Oct 19 2026`.

    Unknown zones fall back to UTC with a warning.
    """

    moment = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    try:
        localized = moment.astimezone(ZoneInfo(timezone))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Using UTC time, found an invalid timezone: %s", timezone)
        localized = moment.astimezone(UTC)

    hour = localized.hour % 12 or 12
    meridiem = "am" if localized.hour < 12 else "pm"
    return f"{hour}:{localized.minute:02d}{meridiem} {localized.strftime('%b %d %Y')}"


class FileServiceUploadBackend:
    """Multipart upload through the file service init / part URL / finalize API.

    Each part is sent in two steps: a signed upload URL is requested from the
    file service, then the bytes are PUT to that URL. Any response mentioning
    `NoSuchUpload` means the remote session is gone.
    """

    def __init__(
        self,
        base_url: str,
        bearer_token: str,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = self._normalize_base_url(base_url)
        self._bearer_token = bearer_token
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def initialize_upload(self, target: UploadTarget) -> MultipartUpload:
        """Call `/files/upload/multipart/init/{teamId}/{folderId}`."""

        path = f"/files/upload/multipart/init/{self._segments(target.team_id, target.folder_id)}"
        data = await self._put_json(path, {"contentType": target.content_type})
        file_id = data.get("fileId")
        upload_id = data.get("uploadId")
        if not isinstance(file_id, str) or not isinstance(upload_id, str):
            raise UploadBackendError(f"PUT {path} returned no fileId/uploadId.")
        return MultipartUpload(file_id=file_id, upload_id=upload_id, key=target.key)

    async def upload_part(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        part_number: int,
        data: bytes,
    ) -> UploadedPart:
        """Request a part upload URL and PUT the part bytes to it."""

        path = "/files/upload/multipart/url/" + self._segments(
            target.team_id,
            target.folder_id,
            upload.file_id,
            upload.upload_id,
            str(part_number),
        )
        payload = await self._put_json(path, {"contentType": target.content_type})
        upload_url = payload.get("uploadUrl")
        if not isinstance(upload_url, str) or not upload_url:
            raise UploadBackendError("No upload URL provided")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.put(
                    upload_url,
                    content=data,
                    headers={"Content-Type": target.content_type},
                )
        except httpx.HTTPError as exc:
            raise UploadBackendError(f"PUT part {part_number} failed: {exc}") from exc
        self._ensure_success(response)

        return UploadedPart(
            part_number=part_number,
            size_bytes=len(data),
            etag=response.headers.get("etag"),
        )

    async def finalize_upload(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        parts: list[UploadedPart],
    ) -> StoredRecording:
        """Call `/files/upload/multipart/finalize/...` and return the stored file."""

        path = "/files/upload/multipart/finalize/" + self._segments(
            target.team_id,
            target.folder_id,
            upload.file_id,
            upload.upload_id,
        )
        name = f"{target.name_prefix} {format_recording_time(target.timezone)}"
        data = await self._put_json(
            path,
            {
                "file": {
                    "contentType": target.content_type,
                    "name": name,
                    "botId": target.bot_id,
                }
            },
        )
        stored_file = data.get("file")
        metadata = cast(dict[str, Any], stored_file) if isinstance(stored_file, dict) else {}
        return StoredRecording(
            file_id=str(metadata.get("id") or upload.file_id),
            key=upload.key,
            name=str(metadata.get("name") or name),
            size_bytes=sum(part.size_bytes for part in parts),
            parts=len(parts),
            metadata=metadata,
        )

    async def abort_upload(self, target: UploadTarget, upload: MultipartUpload) -> None:
        """The file service expires abandoned uploads on its own."""

        logger.info(
            "Leaving multipart upload %s for team %s to expire on the file service.",
            upload.upload_id,
            target.team_id,
        )

    async def _put_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.put(
                    url,
                    json=body,
                    headers={"Authorization": f"Bearer {self._bearer_token}"},
                )
        except httpx.HTTPError as exc:
            raise UploadBackendError(f"PUT {url} failed: {exc}") from exc
        self._ensure_success(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UploadBackendError(f"PUT {url} returned invalid JSON.") from exc
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise UploadBackendError(f"PUT {url} returned no data object.")
        return data

    def _ensure_success(self, response: httpx.Response) -> None:
        if _NO_SUCH_UPLOAD_MARKER in response.text:
            logger.error(
                "Critical: NoSuchUpload returned by %s (status %s)",
                response.request.url,
                response.status_code,
            )
            raise UploadSessionInvalidatedError(self._failure_message(response))
        if response.is_success:
            return
        raise UploadBackendError(self._failure_message(response))

    def _failure_message(self, response: httpx.Response) -> str:
        return (
            f"{response.request.method} {response.request.url} failed: "
            f"{response.status_code} {self._detail_from_response(response)}"
        )

    def _detail_from_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or "<no response body>"

        if isinstance(payload, dict):
            for key in ("detail", "message", "error"):
                detail = payload.get(key)
                if isinstance(detail, str):
                    return detail
        return str(payload)

    def _segments(self, *values: str) -> str:
        return "/".join(quote(value, safe="") for value in values)

    def _normalize_base_url(self, base_url: str) -> str:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise UploadBackendError("File service endpoint cannot be empty.")
        return normalized


__all__ = ["FileServiceUploadBackend", "format_recording_time"]
