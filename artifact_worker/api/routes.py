"""FastAPI routes for triggering and inspecting artifact generation."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from artifact_worker.api.deps import get_worker_dep
from artifact_worker.models.artifact import ArtifactResult, ArtifactStatus
from artifact_worker.services.worker import ArtifactWorker
from artifact_worker.utils.errors import (
    ArtifactWorkerError,
    InvalidJobStateError,
    JobNotFoundError,
    JobStoreError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/artifacts", tags=["artifacts"])


# ==================== Exception Handlers ====================


async def artifact_worker_exception_handler(
    request: Request, exc: ArtifactWorkerError
) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = 500

    if isinstance(exc, JobNotFoundError):
        status_code = 404
    elif isinstance(exc, InvalidJobStateError):
        status_code = 409
    elif isinstance(exc, JobStoreError):
        status_code = 503  # Job store unreachable

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_type": "HTTPException",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": "InternalError",
        },
    )


# ==================== Response Models ====================


class TickResponse(BaseModel):
    """Response model for the tick endpoint."""

    processed: int
    recovered: int
    skipped: bool


class ArtifactStatusResponse(BaseModel):
    """Response model for the status endpoint."""

    artifact_id: str
    status: ArtifactStatus
    retry_count: int
    error: Optional[str] = None
    result: Optional[ArtifactResult] = None


class RetryResponse(BaseModel):
    """Response model for the admin retry endpoint."""

    artifact_id: str
    status: ArtifactStatus
    message: str


# ==================== Endpoints ====================


@router.post("/tick", response_model=TickResponse)
async def run_tick(worker: ArtifactWorker = Depends(get_worker_dep)) -> TickResponse:
    """
    Run one poll cycle.

    For serverless deployments, point a scheduled trigger here instead of
    running the background timer. Safe to call while the timer is active;
    an overlapping call is skipped.
    """
    result = await worker.tick()
    return TickResponse(
        processed=result.processed,
        recovered=result.recovered,
        skipped=result.skipped,
    )


@router.get("/{artifact_id}", response_model=ArtifactStatusResponse)
async def get_artifact_status(
    artifact_id: str,
    worker: ArtifactWorker = Depends(get_worker_dep),
) -> ArtifactStatusResponse:
    """Get the current status of an artifact job."""
    job = await worker.store.get_job(artifact_id)
    if job is None:
        raise JobNotFoundError(artifact_id)

    return ArtifactStatusResponse(
        artifact_id=job.id,
        status=job.status,
        retry_count=job.retry_count,
        error=job.error,
        result=job.result,
    )


@router.post("/{artifact_id}/retry", response_model=RetryResponse)
async def retry_artifact(
    artifact_id: str,
    worker: ArtifactWorker = Depends(get_worker_dep),
) -> RetryResponse:
    """
    Requeue a FAILED artifact (admin action).

    Resets the retry budget. Rejected with 409 if the artifact is not FAILED.
    """
    job = await worker.retry_failed_artifact(artifact_id)
    if job is None:
        raise JobNotFoundError(artifact_id)

    return RetryResponse(
        artifact_id=job.id,
        status=job.status,
        message=f"Artifact {artifact_id} queued for retry",
    )
