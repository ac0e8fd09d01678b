"""Process-level facade over the job store, consumer and storage provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from recording_worker.application.services.job_store import JobStore
from recording_worker.application.services.queue_consumer import JobQueueConsumer
from recording_worker.application.services.recording_job import RecordingJobFactory
from recording_worker.domain.jobs import AdmissionResult, JobRequest
from recording_worker.domain.ports import StorageProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecordingWorker:
    """Everything one worker process runs, with its start and drain sequence."""

    job_store: JobStore
    job_factory: RecordingJobFactory
    storage_provider: StorageProvider | None = None
    consumer: JobQueueConsumer | None = None

    async def start(self) -> None:
        """Validate storage settings, then begin consuming queued jobs."""

        if self.storage_provider is not None:
            self.storage_provider.validate_config()
            logger.info("Storage provider '%s' configured.", self.storage_provider.name)
        if self.consumer is not None:
            await self.consumer.start()

    def submit(self, request: JobRequest) -> AdmissionResult:
        """Try to admit a job built from `request`."""

        job = self.job_factory.build(request)
        result = self.job_store.admit(job)
        if not result.accepted:
            job.logger.info("Job rejected; worker is busy or shutting down.")
        return result

    async def shutdown(self) -> None:
        """Refuse new jobs and wait for the running one, however long it takes."""

        if self.consumer is not None:
            await self.consumer.shutdown()
            return
        self.job_store.request_shutdown()
        await self.job_store.wait_for_completion()


__all__ = ["RecordingWorker"]
