"""Polling worker that drives artifact generation."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from artifact_worker.config import Settings, get_settings
from artifact_worker.models.artifact import ArtifactJob
from artifact_worker.services.claimer import JobClaimer
from artifact_worker.services.database import JobStore
from artifact_worker.services.processor import ArtifactProcessor
from artifact_worker.services.reaper import StuckJobReaper

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    processed: int = 0
    recovered: int = 0
    skipped: bool = False


class ArtifactWorker:
    """
    Durable job runner for artifact generation.

    Each tick recovers stuck jobs, claims at most one PENDING job and
    processes it. Ownership lives in the job row (status + worker token),
    so a restarted process picks up where a dead one left off once the
    reaper releases its jobs.

    ``start()`` runs ticks on a timer. For serverless deployments call
    ``tick()`` from an external scheduler instead.
    """

    def __init__(
        self,
        store: JobStore,
        claimer: JobClaimer,
        reaper: StuckJobReaper,
        processor: ArtifactProcessor,
        poll_interval_seconds: float = 5.0,
        storage_configured: bool = True,
    ) -> None:
        self.store = store
        self.claimer = claimer
        self.reaper = reaper
        self.processor = processor
        self.poll_interval_seconds = poll_interval_seconds
        self.storage_configured = storage_configured
        self.worker_id = str(uuid.uuid4())

        self._busy = asyncio.Lock()
        self._running = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._current: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def start(self) -> bool:
        """
        Start polling. Must be called from a running event loop.

        Returns:
            False if storage is not configured and nothing was started
        """
        if not self.storage_configured:
            logger.warning("Storage not configured. Artifact worker will not process jobs.")
            return False
        if self._running:
            return True

        logger.info(f"Artifact worker {self.worker_id} starting...")
        self._running = True
        self._schedule_poll()
        return True

    def stop(self) -> None:
        """Cancel the pending timer. An in-flight tick runs to completion."""
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info(f"Artifact worker {self.worker_id} shutting down...")

    async def wait_idle(self) -> None:
        """Wait for the in-flight tick to finish, whether the timer or a caller started it."""
        if self._current is not None:
            await asyncio.shield(self._current)
        async with self._busy:
            pass

    def _schedule_poll(self) -> None:
        if not self._running:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.poll_interval_seconds, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._current = asyncio.ensure_future(self._poll_and_reschedule())

    async def _poll_and_reschedule(self) -> None:
        try:
            await self.tick()
        finally:
            self._current = None
            self._schedule_poll()

    async def tick(self) -> TickResult:
        """
        Run one poll cycle: recover stuck jobs, then claim and process one job.

        Overlapping calls are skipped rather than queued.

        Returns:
            Counts of processed and recovered jobs
        """
        if self._busy.locked():
            return TickResult(skipped=True)

        async with self._busy:
            result = TickResult()
            try:
                result.recovered = await self.reaper.recover_stuck_jobs()

                claimed = await self.claimer.claim_next_job()
                if claimed is not None:
                    await self.processor.process(claimed)
                    result.processed = 1
            except Exception as e:
                logger.exception(f"Poll cycle error: {e}")
            return result

    async def retry_failed_artifact(self, job_id: str) -> Optional[ArtifactJob]:
        """
        Requeue a FAILED artifact with a fresh retry budget (admin action).

        Returns:
            The requeued job, or None if it does not exist

        Raises:
            InvalidJobStateError: If the artifact is not FAILED
        """
        job = await self.store.reset_failed(job_id)
        if job is not None:
            logger.info(f"Artifact {job_id} queued for retry via admin action")
        return job


def create_artifact_worker(
    supabase_client: Optional[Any] = None,
    settings: Optional[Settings] = None,
) -> ArtifactWorker:
    """
    Create an ArtifactWorker using application settings.

    Args:
        supabase_client: Optional pre-built Supabase client
        settings: Optional settings (defaults to environment settings)

    Returns:
        Configured ArtifactWorker instance
    """
    from artifact_worker.services.archiver import ZipArchiver
    from artifact_worker.services.catalog import MediaCatalog
    from artifact_worker.services.database import get_supabase_client
    from artifact_worker.services.downloader import MediaDownloader
    from artifact_worker.services.notifier import create_notifier
    from artifact_worker.services.storage import create_blob_store
    from artifact_worker.services.uploader import ArtifactUploader

    settings = settings or get_settings()
    if supabase_client is None:
        supabase_client = get_supabase_client(settings.supabase_url, settings.supabase_key)

    store = JobStore(supabase_client)
    claimer = JobClaimer(store, MediaCatalog(supabase_client))
    reaper = StuckJobReaper(
        store,
        processing_timeout_seconds=settings.processing_timeout_seconds,
        max_retries=settings.max_retries,
        batch_size=settings.stuck_job_batch_size,
    )
    downloader = MediaDownloader(
        cdn_base_url=settings.media_cdn_base_url,
        concurrency=settings.download_concurrency,
        timeout_seconds=settings.download_timeout_seconds,
        retries=settings.download_retries,
        base_delay=settings.initial_backoff_seconds,
        max_delay=settings.max_backoff_seconds,
    )
    processor = ArtifactProcessor(
        store,
        downloader=downloader,
        archiver=ZipArchiver(settings.zip_compression_level),
        uploader=ArtifactUploader(create_blob_store(supabase_client, settings)),
        notifier=create_notifier(settings),
        scratch_dir=settings.scratch_path,
        max_retries=settings.max_retries,
        initial_backoff_seconds=settings.initial_backoff_seconds,
        max_backoff_seconds=settings.max_backoff_seconds,
        max_files=settings.max_media_files_per_zip,
        max_total_bytes=settings.max_zip_size_bytes,
    )

    logger.info(
        f"Artifact worker limits: max {settings.max_media_files_per_zip} files, "
        f"max {round(settings.max_zip_size_bytes / 1024 / 1024)}MB"
    )
    return ArtifactWorker(
        store,
        claimer,
        reaper,
        processor,
        poll_interval_seconds=settings.poll_interval_seconds,
        storage_configured=settings.storage_configured,
    )
