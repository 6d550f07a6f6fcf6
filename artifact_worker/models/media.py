"""Media catalog models (read-only to the worker)."""

from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import BaseModel, Field

from artifact_worker.models.artifact import ArtifactJob

MediaType = Literal["PHOTO", "VIDEO", "FLOORPLAN", "VIRTUAL_TOUR", "OTHER"]


class MediaItem(BaseModel):
    """A file in a project's media catalog."""

    id: str = Field(min_length=1)
    project_id: Optional[str] = None
    key: Optional[str] = None  # content address; None for external-only media
    cdn_url: Optional[str] = None
    filename: str = Field(min_length=1)
    size: Optional[int] = Field(default=None, ge=0)
    type: MediaType = "PHOTO"


class Project(BaseModel):
    """The catalog entry an artifact bundles."""

    id: str = Field(min_length=1)
    address_line1: Optional[str] = None
    city: Optional[str] = None
    organization_name: Optional[str] = None


@dataclass
class DownloadedFile:
    media_id: str
    filename: str
    content: bytes


@dataclass
class ClaimedJob:
    """A job this worker owns, with everything needed to process it."""

    job: ArtifactJob
    project: Project
    media: list[MediaItem] = field(default_factory=list)

    @property
    def worker_token(self) -> str:
        assert self.job.worker_token is not None
        return self.job.worker_token
