"""Notifications about finished artifacts."""

import logging
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel

from artifact_worker.config import Settings, get_settings
from artifact_worker.models.artifact import ArtifactResult, ArtifactStatus

logger = logging.getLogger(__name__)


class ArtifactEvent(BaseModel):
    """Outcome of one artifact job."""

    job_id: str
    project_id: str
    status: ArtifactStatus
    error: Optional[str] = None
    result: Optional[ArtifactResult] = None


class Notifier(Protocol):
    async def notify(self, event: ArtifactEvent) -> None: ...


class LoggingNotifier:
    """Default notifier: writes the outcome to the log."""

    async def notify(self, event: ArtifactEvent) -> None:
        if event.status == ArtifactStatus.READY and event.result:
            logger.info(f"Artifact {event.job_id} ready: {event.result.cdn_url}")
        else:
            logger.info(f"Artifact {event.job_id} {event.status.value}: {event.error}")


class WebhookNotifier:
    """POSTs each event as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def notify(self, event: ArtifactEvent) -> None:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout_seconds) as client:
            response = await client.post(self.url, json=event.model_dump(mode="json"))
            response.raise_for_status()


async def notify_safely(notifier: Notifier, event: ArtifactEvent) -> None:
    """Deliver ``event``; a notifier failure never affects the job."""
    try:
        await notifier.notify(event)
    except Exception as e:
        logger.warning(f"Notification for artifact {event.job_id} failed: {e}")


def create_notifier(settings: Optional[Settings] = None) -> Notifier:
    settings = settings or get_settings()
    if settings.notification_webhook_url:
        return WebhookNotifier(settings.notification_webhook_url)
    return LoggingNotifier()
