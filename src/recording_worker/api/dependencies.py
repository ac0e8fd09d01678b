"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from recording_worker.application.services import RecordingWorker
from recording_worker.bootstrap import build_worker
from recording_worker.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_worker() -> RecordingWorker:
    """Return singleton worker graph."""

    return build_worker(get_settings())


__all__ = ["get_settings", "get_worker"]
