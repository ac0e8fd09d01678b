"""Job submission and busy probe routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from recording_worker.api.dependencies import get_worker
from recording_worker.application.services import RecordingWorker
from recording_worker.domain.jobs import JobRequest

router = APIRouter(tags=["jobs"])


@router.get("/isbusy")
async def is_busy(worker: RecordingWorker = Depends(get_worker)) -> dict[str, object]:
    """Return 1 while a recording job is running, 0 otherwise."""

    return {"success": True, "data": 1 if worker.job_store.is_busy() else 0}


@router.post(
    "/jobs",
    status_code=202,
    responses={
        202: {"description": "Job accepted and started"},
        409: {"description": "Worker is busy or shutting down"},
    },
)
async def submit_job(
    request: JobRequest,
    worker: RecordingWorker = Depends(get_worker),
) -> JSONResponse:
    """Admit a recording job; never waits for the recording to finish."""

    result = worker.submit(request)
    if result.accepted:
        return JSONResponse(status_code=202, content={"success": True})

    reason = (
        "Worker is shutting down"
        if worker.job_store.is_shutdown_requested()
        else "Worker is busy with another job"
    )
    return JSONResponse(status_code=409, content={"success": False, "error": reason})


__all__ = ["router"]
