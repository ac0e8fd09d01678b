"""Domain exceptions for recording jobs, staging, and uploads."""

from __future__ import annotations

import re


class RecordingWorkerError(Exception):
    """Base class for recording worker errors."""


class KnownJobError(RecordingWorkerError):
    """Classified job failure with an explicit retry policy.

    `retryable=False` ends the job on first occurrence. Retryable errors carry
    their own attempt budget in `max_retries`; the job store still applies its
    hard attempt cap on top of it.
    """

    def __init__(self, message: str, retryable: bool = False, max_retries: int = 0) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.max_retries = max_retries


class RecordingUploadError(KnownJobError):
    """Raised when a finished recording could not be uploaded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class JobRequestError(RecordingWorkerError):
    """Raised when a serialized job descriptor cannot be parsed."""


class StagingFileError(RecordingWorkerError):
    """Raised when the local staging file is missing or unusable."""


class StorageConfigurationError(RecordingWorkerError):
    """Raised when a storage provider is missing required settings."""


class UploadBackendError(RecordingWorkerError):
    """Raised when a multipart upload backend call fails."""


class UploadSessionInvalidatedError(UploadBackendError):
    """Raised when the backend no longer recognizes the multipart upload id."""


def describe_error(exc: BaseException | None) -> str:
    """Flatten an exception to a single log-friendly line."""

    if exc is None:
        return "Unknown error (None)"

    name = type(exc).__name__
    message = str(exc).strip()
    text = f"{name} | {message}" if message else name
    return re.sub(r"\s+", " ", text).strip()


def error_type(exc: BaseException | None) -> str:
    """Return the error class name used in job failure log lines."""

    if exc is None:
        return "Unknown"
    return type(exc).__name__


__all__ = [
    "JobRequestError",
    "KnownJobError",
    "RecordingUploadError",
    "RecordingWorkerError",
    "StagingFileError",
    "StorageConfigurationError",
    "UploadBackendError",
    "UploadSessionInvalidatedError",
    "describe_error",
    "error_type",
]
