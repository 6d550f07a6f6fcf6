"""Utility modules for the artifact worker."""

from artifact_worker.utils.errors import (
    ArchiveError,
    ArtifactWorkerError,
    GuardrailViolation,
    InvalidJobStateError,
    JobNotFoundError,
    JobProcessingError,
    JobStoreError,
    MediaFetchError,
    NoMediaDownloadedError,
    TransientFetchError,
    TransientUploadError,
    UploadError,
)
from artifact_worker.utils.retry import backoff_delay, retry_async, with_retry

__all__ = [
    "ArtifactWorkerError",
    "GuardrailViolation",
    "MediaFetchError",
    "TransientFetchError",
    "JobProcessingError",
    "NoMediaDownloadedError",
    "ArchiveError",
    "UploadError",
    "TransientUploadError",
    "JobStoreError",
    "JobNotFoundError",
    "InvalidJobStateError",
    "backoff_delay",
    "retry_async",
    "with_retry",
]
