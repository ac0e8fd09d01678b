from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from recording_worker import main as main_module
from recording_worker.api.dependencies import get_settings, get_worker
from recording_worker.application.services import JobStore, RecordingJobFactory, RecordingWorker
from recording_worker.domain.jobs import JobRequest
from recording_worker.domain.ports import ChunkSink
from recording_worker.domain.uploads import (
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadTarget,
)

PAYLOAD = {
    "bearerToken": "token",
    "url": "https://meet.google.com/abc-defg-hij",
    "name": "Recorder",
    "teamId": "team-1",
    "timezone": "UTC",
    "userId": "user-1",
    "provider": "google",
    "botId": "bot-1",
}


class ReleasableRecorder:
    """Recorder that keeps recording until the test releases it."""

    def __init__(self) -> None:
        self.release = threading.Event()

    async def record(self, request: JobRequest, sink: ChunkSink) -> None:
        while not self.release.is_set():
            await asyncio.sleep(0.01)
        await sink.save_chunk(b"frame")


class AcceptingBackend:
    async def initialize_upload(self, target: UploadTarget) -> MultipartUpload:
        return MultipartUpload(file_id="file-1", upload_id="upload-1", key=target.key)

    async def upload_part(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        part_number: int,
        data: bytes,
    ) -> UploadedPart:
        return UploadedPart(part_number=part_number, size_bytes=len(data), etag="etag")

    async def finalize_upload(
        self,
        target: UploadTarget,
        upload: MultipartUpload,
        parts: list[UploadedPart],
    ) -> StoredRecording:
        return StoredRecording(file_id=upload.file_id, key=upload.key, parts=len(parts))

    async def abort_upload(self, target: UploadTarget, upload: MultipartUpload) -> None:
        return None


@pytest.fixture
def recorder() -> Iterator[ReleasableRecorder]:
    instance = ReleasableRecorder()
    yield instance
    instance.release.set()


@pytest.fixture
def worker(
    recorder: ReleasableRecorder,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[RecordingWorker]:
    backend = AcceptingBackend()
    instance = RecordingWorker(
        job_store=JobStore(drain_poll_seconds=0.01),
        job_factory=RecordingJobFactory(
            recorder,
            lambda request: backend,
            tmp_path,
            chunk_writer_idle_poll_seconds=0.01,
        ),
    )
    monkeypatch.setattr(main_module, "get_worker", lambda: instance)
    main_module.app.dependency_overrides[get_worker] = lambda: instance
    yield instance
    main_module.app.dependency_overrides.clear()


def _wait_until_idle(client: TestClient, timeout_seconds: float = 5.0) -> int:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        busy = client.get("/isbusy").json()["data"]
        if busy == 0:
            return busy
        time.sleep(0.02)
    return client.get("/isbusy").json()["data"]


def test_healthz() -> None:
    get_worker.cache_clear()
    get_settings.cache_clear()

    with TestClient(main_module.app) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_isbusy_reports_idle_worker(worker: RecordingWorker) -> None:
    with TestClient(main_module.app) as client:
        response = client.get("/isbusy")

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": 0}


def test_job_is_accepted_then_second_job_is_rejected_while_busy(
    worker: RecordingWorker,
    recorder: ReleasableRecorder,
) -> None:
    with TestClient(main_module.app) as client:
        accepted = client.post("/jobs", json=PAYLOAD)
        busy = client.get("/isbusy")
        rejected = client.post("/jobs", json={**PAYLOAD, "userId": "user-2"})

        recorder.release.set()
        idle = _wait_until_idle(client)

    assert accepted.status_code == 202
    assert accepted.json() == {"success": True}
    assert busy.json() == {"success": True, "data": 1}
    assert rejected.status_code == 409
    assert rejected.json() == {"success": False, "error": "Worker is busy with another job"}
    assert idle == 0


def test_job_is_rejected_after_shutdown_was_requested(worker: RecordingWorker) -> None:
    with TestClient(main_module.app) as client:
        worker.job_store.request_shutdown()
        response = client.post("/jobs", json=PAYLOAD)

    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Worker is shutting down"}


def test_job_without_required_fields_returns_422(worker: RecordingWorker) -> None:
    payload = dict(PAYLOAD)
    payload.pop("teamId")

    with TestClient(main_module.app) as client:
        response = client.post("/jobs", json=payload)

    assert response.status_code == 422
    assert worker.job_store.is_busy() is False


def test_job_with_path_like_user_id_returns_422(worker: RecordingWorker, tmp_path: Path) -> None:
    with TestClient(main_module.app) as client:
        response = client.post("/jobs", json={**PAYLOAD, "userId": "../../escaped"})

    assert response.status_code == 422
    assert worker.job_store.is_busy() is False
    assert not (tmp_path.parent / "escaped").exists()
