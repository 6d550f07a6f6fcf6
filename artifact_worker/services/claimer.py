"""Exclusive claiming of pending artifact jobs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from artifact_worker.models.media import ClaimedJob
from artifact_worker.services.catalog import MediaCatalog
from artifact_worker.services.database import JobStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobClaimer:
    """Hands exactly one PENDING job to the calling worker."""

    def __init__(
        self,
        store: JobStore,
        catalog: MediaCatalog,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.clock = clock

    async def claim_next_job(self) -> Optional[ClaimedJob]:
        """
        Claim the oldest eligible PENDING job.

        1. Find the oldest PENDING job with no worker token that is due
        2. Conditionally update only that row (id + PENDING + token IS NULL)
        3. If no row was affected another worker won; give up for this tick
        4. Load the project and its media

        Returns:
            The claimed job with its media, or None
        """
        now = self.clock()
        candidate_id = await self.store.find_claim_candidate(now)
        if candidate_id is None:
            return None

        worker_token = str(uuid.uuid4())
        job = await self.store.try_claim(candidate_id, worker_token, now)
        if job is None:
            logger.debug(f"Artifact {candidate_id} was claimed by another worker")
            return None

        project = await self.catalog.get_project(job.project_id)
        if project is None:
            logger.error(f"Artifact {job.id} references missing project {job.project_id}")
            await self.store.fail(job.id, worker_token, "Project not found")
            return None

        media = await self.catalog.list_media(project.id)
        logger.info(f"Claimed artifact {job.id} ({len(media)} media items)")
        return ClaimedJob(job=job, project=project, media=media)
