"""Single-flight job admission, retry and drain."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any

from recording_worker.domain.errors import KnownJobError, describe_error, error_type
from recording_worker.domain.jobs import AdmissionResult, Job, JobStatus

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_RETRY_BACKOFF_SECONDS = 30.0
_DEFAULT_DRAIN_POLL_SECONDS = 1.0

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _JobStoreState:
    """Mutable flags shared by admission, execution and shutdown."""

    running: bool = False
    shutdown_requested: bool = False


class JobStore:
    """Accept at most one job at a time and run it with bounded retries.

    - `admit` answers immediately; the job runs on a detached task.
    - Retries back off linearly (`retry_count * retry_backoff_seconds`) and
      stop after `max_attempts` attempts whatever budget the error declares.
    - After `request_shutdown` nothing new is admitted; `wait_for_completion`
      lets the running job finish without a timeout.
    """

    def __init__(
        self,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        retry_backoff_seconds: float = _DEFAULT_RETRY_BACKOFF_SECONDS,
        drain_poll_seconds: float = _DEFAULT_DRAIN_POLL_SECONDS,
    ) -> None:
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff_seconds = max(0.0, retry_backoff_seconds)
        self._drain_poll_seconds = max(0.001, drain_poll_seconds)
        self._state = _JobStoreState()
        self._lock = threading.Lock()
        self._task: asyncio.Task[None] | None = None

    def admit(self, job: Job, retry_count: int = 0) -> AdmissionResult:
        """Start `job` unless another one runs or shutdown was requested."""

        with self._lock:
            if self._state.running or self._state.shutdown_requested:
                return AdmissionResult(accepted=False)
            self._state.running = True

        job.retry_count = retry_count
        job.status = JobStatus.RUNNING
        runner = self._run(job, retry_count)
        try:
            self._task = asyncio.create_task(runner, name=f"recording-job-{job.job_id}")
        except RuntimeError:
            runner.close()
            self._mark_idle()
            raise

        job.logger.info("LogBasedMetric Bot job has been queued and started recording meeting.")
        return AdmissionResult(accepted=True)

    async def execute_with_retry(self, job: Job, retry_count: int = 0) -> Any:
        """Run `job` until it succeeds or its failure is classified as final."""

        while True:
            try:
                return await job.task(retry_count)
            except Exception as exc:
                if isinstance(exc, KnownJobError) and not exc.retryable:
                    job.logger.error("KnownError is not retryable: %s", describe_error(exc))
                    raise
                if (
                    isinstance(exc, KnownJobError)
                    and exc.retryable
                    and retry_count + 1 >= exc.max_retries
                ):
                    job.logger.error(
                        "KnownError: %s tries consumed: %s",
                        exc.max_retries,
                        describe_error(exc),
                    )
                    raise

                retry_count += 1
                if retry_count >= self._max_attempts:
                    raise

                job.retry_count = retry_count
                delay = retry_count * self._retry_backoff_seconds
                job.logger.warning(
                    "Retry count: %s, next attempt in %.1fs after %s",
                    retry_count,
                    delay,
                    describe_error(exc),
                )
                await asyncio.sleep(delay)

    def is_busy(self) -> bool:
        with self._lock:
            return self._state.running

    def is_shutdown_requested(self) -> bool:
        with self._lock:
            return self._state.shutdown_requested

    def request_shutdown(self) -> None:
        """Refuse every later admission. Idempotent."""

        with self._lock:
            self._state.shutdown_requested = True

    async def wait_for_completion(self) -> None:
        """Return once no job is running; waits as long as the job takes."""

        if not self.is_busy():
            return

        logger.info("Waiting for ongoing tasks to complete...")
        while self.is_busy():
            await asyncio.sleep(self._drain_poll_seconds)
        logger.info("All tasks completed successfully")

    async def _run(self, job: Job, retry_count: int) -> None:
        try:
            await self.execute_with_retry(job, retry_count)
        except Exception as exc:  # noqa: BLE001
            job.status = JobStatus.FAILED
            if isinstance(exc, KnownJobError):
                job.logger.error("KnownError JobStore is permanently exiting: %s", describe_error(exc))
            else:
                job.logger.error(
                    "Error executing task after multiple retries: %s",
                    describe_error(exc),
                )
            job.logger.error(
                "LogBasedMetric Bot has permanently failed. [errorType: %s]",
                error_type(exc),
            )
        else:
            job.status = JobStatus.SUCCEEDED
            job.logger.info("LogBasedMetric Bot has finished recording meeting successfully.")
        finally:
            self._mark_idle()

    def _mark_idle(self) -> None:
        with self._lock:
            self._state.running = False


__all__ = ["JobStore"]
