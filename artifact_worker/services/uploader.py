"""Publishing finished archives."""

import logging
from pathlib import Path
from typing import Union

from pydantic import BaseModel

from artifact_worker.models.media import Project
from artifact_worker.services.storage import BlobStore
from artifact_worker.utils.filenames import artifact_filename

logger = logging.getLogger(__name__)


class UploadedArtifact(BaseModel):
    key: str
    url: str
    filename: str


def build_artifact_filename(project: Project, job_id: str) -> str:
    """``<address>_<city>_<organization>.zip``, or ``<job_id>.zip`` without any of them."""
    return artifact_filename(
        [project.address_line1, project.city, project.organization_name],
        fallback=job_id,
    )


class ArtifactUploader:
    """Names an archive after its project and pushes it to blob storage."""

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    async def upload(self, path: Union[str, Path], project: Project, job_id: str) -> UploadedArtifact:
        filename = build_artifact_filename(project, job_id)
        stored = await self.blob_store.upload(path, filename)
        return UploadedArtifact(key=stored.key, url=stored.url, filename=filename)

    async def discard(self, uploaded: UploadedArtifact) -> None:
        """Delete an archive that will never be recorded on its job."""
        try:
            await self.blob_store.delete(uploaded.key)
        except Exception as e:
            logger.warning(f"Failed to delete orphaned archive {uploaded.key}: {e}")
