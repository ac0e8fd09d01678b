"""HTTP API."""

from recording_worker.api.router import api_router

__all__ = ["api_router"]
