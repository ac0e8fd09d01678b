"""Blocking-pop loop feeding queued job descriptors into the job store."""

from __future__ import annotations

import asyncio
import logging

from recording_worker.application.services.job_store import JobStore
from recording_worker.application.services.recording_job import RecordingJobFactory
from recording_worker.domain.errors import JobRequestError, describe_error
from recording_worker.domain.ports import MessageQueue

_DEFAULT_POLL_TIMEOUT_SECONDS = 10.0
_DEFAULT_REJECTED_BACKOFF_SECONDS = 1.0

logger = logging.getLogger(__name__)


class JobQueueConsumer:
    """Pull job descriptors from a FIFO queue and admit them one at a time.

    A message rejected by the job store goes back to the head of the queue,
    so no job is lost while the worker is busy or shutting down.
    """

    def __init__(
        self,
        queue: MessageQueue,
        job_store: JobStore,
        job_factory: RecordingJobFactory,
        poll_timeout_seconds: float = _DEFAULT_POLL_TIMEOUT_SECONDS,
        rejected_backoff_seconds: float = _DEFAULT_REJECTED_BACKOFF_SECONDS,
    ) -> None:
        self._queue = queue
        self._job_store = job_store
        self._job_factory = job_factory
        self._poll_timeout_seconds = poll_timeout_seconds
        self._rejected_backoff_seconds = max(0.0, rejected_backoff_seconds)
        self._stopping = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the consume loop in the background."""

        if self.running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self.run(), name="job-queue-consumer")
        logger.info("Job queue consumer started.")

    async def run(self) -> None:
        """Consume messages until `shutdown` is requested."""

        while not self._stopping:
            try:
                await self.poll_once()
            except Exception as exc:  # noqa: BLE001
                logger.error("Job queue poll failed: %s", describe_error(exc))
                await asyncio.sleep(self._rejected_backoff_seconds)

    async def poll_once(self) -> bool | None:
        """Handle at most one message; return admission outcome or None when idle."""

        message = await self._queue.dequeue_with_timeout(self._poll_timeout_seconds)
        if message is None:
            return None

        try:
            request = self._job_factory.parse(message)
        except JobRequestError as exc:
            logger.error("Dropping malformed job message: %s", describe_error(exc))
            return False

        job = self._job_factory.build(request)
        result = self._job_store.admit(job)
        if result.accepted:
            job.logger.info("Job accepted for team %s.", request.team_id)
            return True

        await self._queue.requeue_to_head(message)
        job.logger.info(
            "Job rejected (busy=%s, shutdown=%s); returned to the head of the queue.",
            self._job_store.is_busy(),
            self._job_store.is_shutdown_requested(),
        )
        await asyncio.sleep(self._rejected_backoff_seconds)
        return False

    async def shutdown(self) -> None:
        """Stop admitting work, drain the running job, then close the transport."""

        logger.info("Shutdown requested; no new jobs will be accepted.")
        self._job_store.request_shutdown()
        self._stopping = True

        task = self._task
        if task is not None:
            await task
            self._task = None

        await self._job_store.wait_for_completion()
        await self._queue.close()
        logger.info("Job queue consumer stopped.")


__all__ = ["JobQueueConsumer"]
