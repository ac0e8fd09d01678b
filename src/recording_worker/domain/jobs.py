"""Recording job models."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MeetingProvider(StrEnum):
    """Meeting providers a recording job can target."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
    ZOOM = "zoom"


class JobStatus(StrEnum):
    """Logical job states reported in logs."""

    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


_RECORDING_NAME_PREFIXES = {
    MeetingProvider.GOOGLE: "Google Meet Recording",
    MeetingProvider.MICROSOFT: "Microsoft Teams Recording",
    MeetingProvider.ZOOM: "Zoom Recording",
}


class JobRequest(BaseModel):
    """Serialized job descriptor received from the queue or the HTTP API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bearer_token: str = Field(alias="bearerToken")
    url: str
    name: str
    team_id: str = Field(alias="teamId")
    timezone: str = "UTC"
    user_id: str = Field(alias="userId")
    provider: MeetingProvider
    event_id: str | None = Field(default=None, alias="eventId")
    bot_id: str | None = Field(default=None, alias="botId")

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        """Keep the id usable as a single staging directory name."""

        if not value.strip() or value in {".", ".."}:
            raise ValueError("userId must be a non-empty name.")
        if any(separator in value for separator in ("/", "\\", "\x00")):
            raise ValueError("userId must not contain path separators.")
        return value

    @property
    def entity_id(self) -> str:
        """Identifier of the scheduled entity that triggered the recording."""

        return self.bot_id or self.event_id or ""

    @property
    def recording_name_prefix(self) -> str:
        """Human readable prefix for the stored recording name."""

        return _RECORDING_NAME_PREFIXES.get(self.provider, "Recording")


JobTask = Callable[[int], Awaitable[Any]]


@dataclass(slots=True)
class Job:
    """One unit of work owned by the job store while it runs.

    `task` receives the retry count of the current attempt so the closure can
    derive per-attempt resources such as the staging file name.
    """

    task: JobTask
    logger: logging.LoggerAdapter
    job_id: str = field(default_factory=lambda: str(uuid4()))
    retry_count: int = 0
    status: JobStatus | None = None


@dataclass(slots=True, frozen=True)
class AdmissionResult:
    """Outcome of a job admission attempt."""

    accepted: bool


def create_correlation_id(*parts: str | None) -> str:
    """Build a stable correlation id from job identifying fields."""

    joined = "|".join(part or "" for part in parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


class JobLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter stamping every record with the job correlation context."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"[{extra.get('correlation_id', '-')}] {msg}", kwargs


def job_logger(
    correlation_id: str,
    provider: str | None = None,
    base: logging.Logger | None = None,
) -> JobLoggerAdapter:
    """Return a logger adapter carrying the job correlation context."""

    extra: dict[str, object] = {"correlation_id": correlation_id}
    if provider is not None:
        extra["provider"] = provider
    return JobLoggerAdapter(base or logging.getLogger("recording_worker.job"), extra)


__all__ = [
    "AdmissionResult",
    "Job",
    "JobLoggerAdapter",
    "JobRequest",
    "JobStatus",
    "JobTask",
    "MeetingProvider",
    "create_correlation_id",
    "job_logger",
]
