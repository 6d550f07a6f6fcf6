"""Recovery of jobs abandoned mid-processing."""

import logging
from datetime import datetime, timedelta
from typing import Callable

from artifact_worker.services.claimer import utc_now
from artifact_worker.services.database import JobStore

logger = logging.getLogger(__name__)


class StuckJobReaper:
    """
    Requeues or fails GENERATING jobs past the processing timeout.

    A worker that crashed or restarted never writes a terminal state, so
    a claim older than the timeout is treated as abandoned.
    """

    def __init__(
        self,
        store: JobStore,
        processing_timeout_seconds: float = 300.0,
        max_retries: int = 3,
        batch_size: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.processing_timeout = timedelta(seconds=processing_timeout_seconds)
        self.max_retries = max_retries
        self.batch_size = batch_size
        self.clock = clock

    async def recover_stuck_jobs(self) -> int:
        """
        Sweep one batch of stuck jobs.

        Returns:
            Number of stuck jobs found
        """
        threshold = self.clock() - self.processing_timeout
        stuck_jobs = await self.store.find_stuck_jobs(threshold, self.batch_size)

        for job in stuck_jobs:
            token = job.worker_token or None
            if job.retry_count < self.max_retries:
                attempt = job.retry_count + 1
                changed = await self.store.requeue(
                    job.id,
                    token,
                    retry_count=attempt,
                    error=f"Recovered from stuck state (attempt {attempt}/{self.max_retries})",
                )
                if changed:
                    logger.warning(
                        f"Recovered stuck artifact {job.id} (retry {attempt}/{self.max_retries})"
                    )
            else:
                changed = await self.store.fail(
                    job.id,
                    token,
                    f"Generation timed out after {self.max_retries} attempts",
                )
                if changed:
                    logger.error(
                        f"Artifact {job.id} failed after {self.max_retries} retry attempts"
                    )

            if not changed:
                logger.info(f"Stuck artifact {job.id} changed state before recovery")

        return len(stuck_jobs)
