"""Retry helpers for flaky network and storage calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from recording_worker.domain.errors import (
    KnownJobError,
    UploadSessionInvalidatedError,
    describe_error,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def retry_with_resilience(
    action: Callable[[], Awaitable[T]],
    *,
    description: str,
    max_attempts: int = 3,
    base_delay_seconds: float = 0.5,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> T:
    """Run `action` with exponential backoff between attempts.

    Delay after failed attempt `n` is `base_delay_seconds * 2 ** (n - 1)`.
    `UploadSessionInvalidatedError` is re-raised at once so the caller can
    restart the whole upload session.
    """

    active_log = log or logger
    attempts = max(1, max_attempts)
    attempt = 0
    while True:
        try:
            return await action()
        except UploadSessionInvalidatedError:
            raise
        except Exception as exc:  # noqa: BLE001
            attempt += 1
            if attempt >= attempts:
                active_log.info(
                    "Failed to %s after %s attempts: %s",
                    description,
                    attempts,
                    describe_error(exc),
                )
                raise
            delay = base_delay_seconds * (2 ** (attempt - 1))
            active_log.info(
                "Retry %s, attempt %s after %.3fs: %s",
                description,
                attempt,
                delay,
                describe_error(exc),
            )
            await asyncio.sleep(delay)


async def retry_action_with_wait(
    action_name: str,
    action: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    wait_seconds: float = 20.0,
    on_error: Callable[[], Awaitable[None]] | None = None,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> T:
    """Run `action` up to `attempts` times with a fixed wait between failures.

    `on_error` runs once after the final failure, before the last error is
    re-raised. A non-retryable `KnownJobError` is re-raised at once.
    """

    active_log = log or logger
    total = max(1, attempts)
    last_error: Exception | None = None
    for attempt in range(1, total + 1):
        try:
            return await action()
        except Exception as exc:  # noqa: BLE001
            if isinstance(exc, KnownJobError) and not exc.retryable:
                if on_error is not None:
                    await on_error()
                raise
            last_error = exc
            if attempt < total:
                active_log.warning('Retry %s on "%s" action', attempt, action_name)
                await asyncio.sleep(wait_seconds)

    if on_error is not None:
        await on_error()
    active_log.error('Unable to complete the "%s" action after %s attempts', action_name, total)
    assert last_error is not None
    raise last_error


__all__ = ["retry_action_with_wait", "retry_with_resilience"]
