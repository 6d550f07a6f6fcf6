"""Artifact generation pipeline for a claimed job."""

import logging
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from artifact_worker.models.artifact import ArtifactResult, ArtifactStatus
from artifact_worker.models.media import ClaimedJob, MediaItem
from artifact_worker.services.archiver import ZipArchiver
from artifact_worker.services.claimer import utc_now
from artifact_worker.services.database import JobStore
from artifact_worker.services.downloader import MediaDownloader
from artifact_worker.services.guardrails import check_guardrails, select_media
from artifact_worker.services.notifier import ArtifactEvent, LoggingNotifier, Notifier, notify_safely
from artifact_worker.services.uploader import ArtifactUploader
from artifact_worker.utils.errors import GuardrailViolation, NoMediaDownloadedError
from artifact_worker.utils.retry import backoff_delay

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


class ArtifactProcessor:
    """
    Turns one claimed job into a published zip and records the outcome.

    guardrails -> download -> archive -> upload -> READY, with failures
    routed to a job-level retry (PENDING) or a terminal FAILED. Every
    state write is conditional on this worker's token. The scratch
    archive is always removed.
    """

    def __init__(
        self,
        store: JobStore,
        downloader: MediaDownloader,
        archiver: ZipArchiver,
        uploader: ArtifactUploader,
        notifier: Optional[Notifier] = None,
        scratch_dir: Optional[str] = None,
        max_retries: int = 3,
        initial_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 30.0,
        max_files: int = 500,
        max_total_bytes: int = 2 * 1024 * 1024 * 1024,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.downloader = downloader
        self.archiver = archiver
        self.uploader = uploader
        self.notifier = notifier or LoggingNotifier()
        self.scratch_dir = Path(scratch_dir or tempfile.gettempdir())
        self.max_retries = max_retries
        self.initial_backoff_seconds = initial_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.max_files = max_files
        self.max_total_bytes = max_total_bytes
        self.clock = clock

    def scratch_path(self, job_id: str) -> Path:
        return self.scratch_dir / f"{job_id}.zip"

    async def process(self, claimed: ClaimedJob) -> ArtifactStatus:
        """
        Process a claimed job to a terminal or requeued state.

        Args:
            claimed: Job owned by this worker, with project and media

        Returns:
            The status this worker wrote (READY, PENDING or FAILED)
        """
        job = claimed.job
        logger.info(f"Processing artifact {job.id} for project {claimed.project.id}")

        media = select_media(claimed.media, job.media_filter)
        try:
            estimated = check_guardrails(media, self.max_files, self.max_total_bytes)
        except GuardrailViolation as e:
            logger.warning(f"Artifact {job.id} rejected: {e}")
            return await self._fail(claimed, str(e))

        logger.info(
            f"Artifact {job.id}: {len(media)} files, ~{round(estimated / _MB)}MB estimated"
        )

        scratch_path = self.scratch_path(job.id)
        try:
            return await self._build_and_publish(claimed, media, scratch_path)
        except Exception as e:
            logger.exception(f"Failed to generate artifact {job.id}: {e}")
            return await self._handle_failure(claimed, str(e))
        finally:
            self._cleanup(scratch_path)

    async def _build_and_publish(
        self, claimed: ClaimedJob, media: List[MediaItem], scratch_path: Path
    ) -> ArtifactStatus:
        job = claimed.job

        # External-only media (e.g. virtual tours) has no file to download
        downloadable = [m for m in media if m.key]
        files = await self.downloader.download_all(downloadable)
        if not files:
            raise NoMediaDownloadedError()

        logger.info(f"Downloaded {len(files)}/{len(media)} files for artifact {job.id}")

        size = await self.archiver.create_archive(scratch_path, files)
        uploaded = await self.uploader.upload(scratch_path, claimed.project, job.id)

        result = ArtifactResult(
            key=uploaded.key,
            cdn_url=uploaded.url,
            filename=uploaded.filename,
            size=size,
        )
        if not await self.store.complete(job.id, claimed.worker_token, result):
            logger.warning(f"Lost lock on artifact {job.id} - another worker may have taken over")
            await self.uploader.discard(uploaded)
            return ArtifactStatus.READY

        logger.info(f"Artifact {job.id} completed successfully")
        await notify_safely(
            self.notifier,
            ArtifactEvent(
                job_id=job.id,
                project_id=job.project_id,
                status=ArtifactStatus.READY,
                result=result,
            ),
        )
        return ArtifactStatus.READY

    async def _handle_failure(self, claimed: ClaimedJob, reason: str) -> ArtifactStatus:
        """Requeue with backoff while budget remains, otherwise fail."""
        job = claimed.job
        if job.retry_count < self.max_retries - 1:
            delay = backoff_delay(
                job.retry_count, self.initial_backoff_seconds, self.max_backoff_seconds
            )
            next_attempt_at = self.clock() + timedelta(seconds=delay)
            attempt = job.retry_count + 1
            changed = await self.store.requeue(
                job.id,
                claimed.worker_token,
                retry_count=attempt,
                error=f"Retrying: {reason}",
                next_attempt_at=next_attempt_at,
            )
            if changed:
                logger.info(
                    f"Artifact {job.id} requeued (retry {attempt}/{self.max_retries}), "
                    f"eligible again in {delay}s"
                )
            else:
                logger.warning(f"Lost lock on artifact {job.id} while requeueing")
            return ArtifactStatus.PENDING

        return await self._fail(claimed, reason)

    async def _fail(self, claimed: ClaimedJob, reason: str) -> ArtifactStatus:
        job = claimed.job
        if not await self.store.fail(job.id, claimed.worker_token, reason):
            logger.warning(f"Lost lock on artifact {job.id} while marking it failed")
            return ArtifactStatus.FAILED

        await notify_safely(
            self.notifier,
            ArtifactEvent(
                job_id=job.id,
                project_id=job.project_id,
                status=ArtifactStatus.FAILED,
                error=reason,
            ),
        )
        return ArtifactStatus.FAILED

    def _cleanup(self, scratch_path: Path) -> None:
        try:
            scratch_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clean up temp file {scratch_path}: {e}")
