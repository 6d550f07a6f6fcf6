"""Job store for download artifacts, backed by Supabase."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from artifact_worker.models.artifact import ArtifactJob, ArtifactResult, ArtifactStatus
from artifact_worker.utils.errors import (
    InvalidJobStateError,
    JobStoreError,
)

logger = logging.getLogger(__name__)

ARTIFACTS_TABLE = "download_artifacts"

# Columns cleared whenever a job leaves GENERATING
_RELEASE_LOCK = {"worker_token": None, "processing_started_at": None}


def get_supabase_client(url: str, key: str) -> Client:
    """Create a Supabase client."""
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def _iso(value: datetime) -> str:
    return value.isoformat()


class JobStore:
    """
    Durable store of artifact jobs.

    Every state change that depends on ownership is a conditional update:
    the filters are the WHERE clause, and the returned rows are the
    affected rows. ``claim`` is
    ``UPDATE download_artifacts SET status='GENERATING', worker_token=?
    WHERE id=? AND status='PENDING' AND worker_token IS NULL``.
    """

    def __init__(self, supabase_client: Any, table: str = ARTIFACTS_TABLE) -> None:
        """
        Initialize the JobStore.

        Args:
            supabase_client: Supabase client instance
            table: Name of the artifacts table
        """
        self.supabase = supabase_client
        self.table = table

    def _query(self) -> Any:
        return self.supabase.table(self.table)

    # ==================== READS ====================

    async def get_job(self, job_id: str) -> Optional[ArtifactJob]:
        """
        Retrieve a job by ID.

        Args:
            job_id: The artifact ID to retrieve

        Returns:
            ArtifactJob if found, None otherwise
        """
        try:
            result = self._query().select("*").eq("id", job_id).limit(1).execute()
        except Exception as e:
            raise JobStoreError(f"Failed to get artifact {job_id}: {e}")

        if not result.data:
            return None
        return ArtifactJob.from_row(result.data[0])

    async def find_claim_candidate(self, now: datetime) -> Optional[str]:
        """Return the id of the oldest unclaimed PENDING job that is due, if any."""
        try:
            result = (
                self._query()
                .select("id")
                .eq("status", ArtifactStatus.PENDING.value)
                .is_("worker_token", "null")
                .or_(f"next_attempt_at.is.null,next_attempt_at.lte.{_iso(now)}")
                .order("created_at")
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise JobStoreError(f"Failed to find claimable artifact: {e}")

        if not result.data:
            return None
        return result.data[0]["id"]

    async def find_stuck_jobs(self, started_before: datetime, limit: int) -> List[ArtifactJob]:
        """
        Retrieve GENERATING jobs whose processing started before a threshold.

        Args:
            started_before: Processing start time cutoff
            limit: Maximum number of jobs to return

        Returns:
            List of stuck ArtifactJobs, oldest claims first
        """
        try:
            result = (
                self._query()
                .select("*")
                .eq("status", ArtifactStatus.GENERATING.value)
                .lt("processing_started_at", _iso(started_before))
                .order("processing_started_at")
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise JobStoreError(f"Failed to find stuck artifacts: {e}")

        return [ArtifactJob.from_row(row) for row in result.data or []]

    # ==================== CONDITIONAL WRITES ====================

    async def try_claim(self, job_id: str, worker_token: str, now: datetime) -> Optional[ArtifactJob]:
        """
        Atomically flip one PENDING, unclaimed job to GENERATING.

        Returns:
            The claimed job, or None if another worker won the race
        """
        rows = await self._conditional_update(
            job_id,
            {
                "status": ArtifactStatus.GENERATING.value,
                "worker_token": worker_token,
                "processing_started_at": _iso(now),
                "next_attempt_at": None,
            },
            status=ArtifactStatus.PENDING,
            worker_token=None,
        )
        if not rows:
            return None
        return ArtifactJob.from_row(rows[0])

    async def complete(self, job_id: str, worker_token: Optional[str], result: ArtifactResult) -> bool:
        """Mark a job READY. Returns False if the lock was lost."""
        rows = await self._conditional_update(
            job_id,
            {
                "status": ArtifactStatus.READY.value,
                "key": result.key,
                "cdn_url": result.cdn_url,
                "filename": result.filename,
                "size": result.size,
                "error": None,
                **_RELEASE_LOCK,
            },
            status=ArtifactStatus.GENERATING,
            worker_token=worker_token,
        )
        return bool(rows)

    async def requeue(
        self,
        job_id: str,
        worker_token: Optional[str],
        retry_count: int,
        error: str,
        next_attempt_at: Optional[datetime] = None,
    ) -> bool:
        """Put a GENERATING job back to PENDING. Returns False if the lock was lost."""
        rows = await self._conditional_update(
            job_id,
            {
                "status": ArtifactStatus.PENDING.value,
                "retry_count": retry_count,
                "error": error,
                "next_attempt_at": _iso(next_attempt_at) if next_attempt_at else None,
                **_RELEASE_LOCK,
            },
            status=ArtifactStatus.GENERATING,
            worker_token=worker_token,
        )
        return bool(rows)

    async def fail(self, job_id: str, worker_token: Optional[str], error: str) -> bool:
        """Mark a GENERATING job FAILED. Returns False if the lock was lost."""
        rows = await self._conditional_update(
            job_id,
            {
                "status": ArtifactStatus.FAILED.value,
                "error": error,
                "next_attempt_at": None,
                **_RELEASE_LOCK,
            },
            status=ArtifactStatus.GENERATING,
            worker_token=worker_token,
        )
        return bool(rows)

    async def reset_failed(self, job_id: str) -> Optional[ArtifactJob]:
        """
        Move a FAILED job back to PENDING with a fresh retry budget.

        Args:
            job_id: The artifact ID to reset

        Returns:
            The reset job, or None if no such job exists

        Raises:
            InvalidJobStateError: If the job is not FAILED
        """
        job = await self.get_job(job_id)
        if job is None:
            return None
        if job.status != ArtifactStatus.FAILED:
            raise InvalidJobStateError(job_id, job.status.value, ArtifactStatus.FAILED.value)

        rows = await self._conditional_update(
            job_id,
            {
                "status": ArtifactStatus.PENDING.value,
                "retry_count": 0,
                "error": None,
                "next_attempt_at": None,
                **_RELEASE_LOCK,
            },
            status=ArtifactStatus.FAILED,
        )
        if not rows:
            # Someone else reset it between the read and the write
            current = await self.get_job(job_id)
            state = current.status.value if current else "missing"
            raise InvalidJobStateError(job_id, state, ArtifactStatus.FAILED.value)
        return ArtifactJob.from_row(rows[0])

    async def _conditional_update(
        self,
        job_id: str,
        data: Dict[str, Any],
        status: ArtifactStatus,
        worker_token: Optional[str] = "",
    ) -> List[Dict[str, Any]]:
        """
        UPDATE ... WHERE id = ? AND status = ? [AND worker_token = ? | IS NULL].

        An empty string skips the token check; None requires NULL.

        Returns:
            The affected rows
        """
        try:
            query = (
                self._query()
                .update(data)
                .eq("id", job_id)
                .eq("status", status.value)
            )
            if worker_token is None:
                query = query.is_("worker_token", "null")
            elif worker_token:
                query = query.eq("worker_token", worker_token)
            result = query.execute()
        except Exception as e:
            raise JobStoreError(f"Failed to update artifact {job_id}: {e}")

        return result.data or []

