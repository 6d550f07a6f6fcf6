"""FastAPI application hosting the artifact worker."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException

from artifact_worker.api.routes import (
    artifact_worker_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    router as artifacts_router,
)
from artifact_worker.config import get_settings
from artifact_worker.services.worker import create_artifact_worker
from artifact_worker.utils.errors import ArtifactWorkerError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    worker = None
    if settings.supabase_url and settings.supabase_key:
        worker = create_artifact_worker(settings=settings)
        worker.start()
    else:
        logger.warning("Supabase not configured. Artifact worker disabled.")
    app.state.worker = worker

    yield

    if worker is not None:
        worker.stop()
        await worker.wait_idle()


def create_app() -> FastAPI:
    """Build the FastAPI app with routes and error handlers."""
    app = FastAPI(title="Artifact Worker API", lifespan=lifespan)
    app.include_router(artifacts_router)
    app.add_exception_handler(ArtifactWorkerError, artifact_worker_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health")
    async def health():
        worker = getattr(app.state, "worker", None)
        return {
            "status": "ok",
            "worker_running": bool(worker and worker.running),
        }

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
