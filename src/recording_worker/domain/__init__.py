"""Domain public API."""

from recording_worker.domain.errors import (
    JobRequestError,
    KnownJobError,
    RecordingUploadError,
    RecordingWorkerError,
    StagingFileError,
    StorageConfigurationError,
    UploadBackendError,
    UploadSessionInvalidatedError,
    describe_error,
    error_type,
)
from recording_worker.domain.jobs import (
    AdmissionResult,
    Job,
    JobLoggerAdapter,
    JobRequest,
    JobStatus,
    JobTask,
    MeetingProvider,
    create_correlation_id,
    job_logger,
)
from recording_worker.domain.ports import (
    ChunkSink,
    MessageQueue,
    MultipartUploadBackend,
    Recorder,
    StorageProvider,
    StorageProviderName,
)
from recording_worker.domain.uploads import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_FOLDER_ID,
    MultipartUpload,
    StoredRecording,
    UploadedPart,
    UploadOptions,
    UploadSessionState,
    UploadTarget,
)

__all__ = [
    "AdmissionResult",
    "ChunkSink",
    "DEFAULT_CONTENT_TYPE",
    "DEFAULT_FOLDER_ID",
    "Job",
    "JobLoggerAdapter",
    "JobRequest",
    "JobRequestError",
    "JobStatus",
    "JobTask",
    "KnownJobError",
    "MeetingProvider",
    "MessageQueue",
    "MultipartUpload",
    "MultipartUploadBackend",
    "Recorder",
    "RecordingUploadError",
    "RecordingWorkerError",
    "StagingFileError",
    "StorageConfigurationError",
    "StorageProvider",
    "StorageProviderName",
    "StoredRecording",
    "UploadBackendError",
    "UploadOptions",
    "UploadSessionInvalidatedError",
    "UploadSessionState",
    "UploadTarget",
    "UploadedPart",
    "create_correlation_id",
    "describe_error",
    "error_type",
    "job_logger",
]
