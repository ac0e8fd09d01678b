"""Route modules public API."""

from recording_worker.api.routes.health import router as health_router
from recording_worker.api.routes.jobs import router as jobs_router

__all__ = ["health_router", "jobs_router"]
