"""Pydantic data models for the artifact worker."""

from artifact_worker.models.artifact import (
    ArtifactJob,
    ArtifactResult,
    ArtifactStatus,
    ArtifactType,
)
from artifact_worker.models.media import ClaimedJob, DownloadedFile, MediaItem, Project

__all__ = [
    "ArtifactJob",
    "ArtifactResult",
    "ArtifactStatus",
    "ArtifactType",
    "ClaimedJob",
    "DownloadedFile",
    "MediaItem",
    "Project",
]
