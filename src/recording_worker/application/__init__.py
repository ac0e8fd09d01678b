"""Application layer."""

from recording_worker.application.services import (
    JobQueueConsumer,
    JobStore,
    RecordingJobFactory,
    RecordingWorker,
)

__all__ = ["JobQueueConsumer", "JobStore", "RecordingJobFactory", "RecordingWorker"]
