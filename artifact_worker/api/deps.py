"""FastAPI dependencies for the artifact worker API."""

from fastapi import HTTPException, Request

from artifact_worker.services.worker import ArtifactWorker


def get_worker_dep(request: Request) -> ArtifactWorker:
    """Dependency for the worker created at startup."""
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=503, detail="Artifact worker not configured")
    return worker
