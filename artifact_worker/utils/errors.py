"""Custom exception classes for the artifact worker."""

from typing import Optional


class ArtifactWorkerError(Exception):
    """Base exception for all application errors."""

    pass


class GuardrailViolation(ArtifactWorkerError):
    """A job was rejected before any download. Never retried."""

    pass


class MediaFetchError(ArtifactWorkerError):
    """A single media item could not be fetched."""

    def __init__(self, media_id: str, message: str, status_code: Optional[int] = None) -> None:
        self.media_id = media_id
        self.status_code = status_code
        super().__init__(f"Media {media_id}: {message}")


class TransientFetchError(MediaFetchError):
    """Timeout, network error or 5xx. Worth another attempt."""

    pass


class JobProcessingError(ArtifactWorkerError):
    """Errors while producing an artifact. Drives the job-level retry policy."""

    pass


class NoMediaDownloadedError(JobProcessingError):
    """Every download for a job failed."""

    def __init__(self) -> None:
        super().__init__("No media files could be downloaded")


class ArchiveError(JobProcessingError):
    """The zip archive could not be written."""

    pass


class UploadError(JobProcessingError):
    """Blob storage rejected the upload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"Upload failed ({status_code}): {message}"
        super().__init__(message)


class TransientUploadError(UploadError):
    """Network error, 429 or 5xx from blob storage. Worth another attempt."""

    pass


class JobStoreError(ArtifactWorkerError):
    """A job store operation failed."""

    pass


class JobNotFoundError(ArtifactWorkerError):
    """No artifact job with the given id."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Artifact {job_id} not found")


class InvalidJobStateError(ArtifactWorkerError):
    """The job is not in a state that allows the requested action."""

    def __init__(self, job_id: str, current: str, expected: str) -> None:
        self.job_id = job_id
        self.current = current
        super().__init__(
            f"Artifact {job_id} is not in {expected} state (current: {current})"
        )
