"""Artifact job Pydantic models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class ArtifactStatus(str, Enum):
    PENDING = "PENDING"
    GENERATING = "GENERATING"
    READY = "READY"
    FAILED = "FAILED"


class ArtifactType(str, Enum):
    """Which media of a project go into the archive."""

    ALL_MEDIA = "ALL_MEDIA"
    PHOTOS_ONLY = "PHOTOS_ONLY"
    VIDEOS_ONLY = "VIDEOS_ONLY"


class ArtifactResult(BaseModel):
    """Where a finished archive was published."""

    key: str = Field(min_length=1)
    cdn_url: str = Field(min_length=1)
    filename: str = Field(min_length=1)
    size: int = Field(ge=0)


class ArtifactJob(BaseModel):
    """A request to bundle one project's media into a zip artifact."""

    id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    status: ArtifactStatus = ArtifactStatus.PENDING
    media_filter: ArtifactType = ArtifactType.ALL_MEDIA
    worker_token: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    next_attempt_at: Optional[datetime] = None
    retry_count: int = Field(default=0, ge=0)
    error: Optional[str] = None
    result: Optional[ArtifactResult] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_lock_and_result(self) -> "ArtifactJob":
        """A result exists only when READY; a PENDING job holds no token."""
        if (self.result is not None) != (self.status == ArtifactStatus.READY):
            raise ValueError("result must be set if and only if status is READY")
        if self.status == ArtifactStatus.PENDING and self.worker_token is not None:
            raise ValueError("a PENDING job cannot hold a worker token")
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ArtifactJob":
        """Build a job from a ``download_artifacts`` row."""
        result = None
        if row.get("status") == ArtifactStatus.READY.value:
            result = ArtifactResult(
                key=row["key"],
                cdn_url=row["cdn_url"],
                filename=row["filename"],
                size=row["size"],
            )
        data = {
            "id": row["id"],
            "project_id": row["project_id"],
            "status": row["status"],
            "media_filter": row.get("type") or ArtifactType.ALL_MEDIA,
            "worker_token": row.get("worker_token"),
            "processing_started_at": row.get("processing_started_at"),
            "next_attempt_at": row.get("next_attempt_at"),
            "retry_count": row.get("retry_count") or 0,
            "error": row.get("error"),
            "result": result,
        }
        if row.get("created_at"):
            data["created_at"] = row["created_at"]
        return cls(**data)
