"""Application services."""

from recording_worker.application.services.job_store import JobStore
from recording_worker.application.services.queue_consumer import JobQueueConsumer
from recording_worker.application.services.recording_job import (
    RecordingJobFactory,
    UploadBackendFactory,
)
from recording_worker.application.services.worker import RecordingWorker

__all__ = [
    "JobQueueConsumer",
    "JobStore",
    "RecordingJobFactory",
    "RecordingWorker",
    "UploadBackendFactory",
]
