"""Recording producers."""

from recording_worker.infrastructure.recorders.http_stream_recorder import HttpStreamRecorder

__all__ = ["HttpStreamRecorder"]
