"""Bounded-concurrency media downloads with per-file retry."""

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from artifact_worker.models.media import DownloadedFile, MediaItem
from artifact_worker.utils.errors import MediaFetchError, TransientFetchError
from artifact_worker.utils.filenames import sanitize_entry_name
from artifact_worker.utils.retry import retry_async

logger = logging.getLogger(__name__)


class MediaDownloader:
    """
    Fetches media bytes for an artifact.

    At most ``concurrency`` fetches are in flight at once. Each fetch is
    aborted after ``timeout_seconds``. Timeouts, network errors and 5xx
    responses are retried ``retries`` more times with exponential backoff;
    4xx responses are not. An item that still fails is skipped.
    """

    def __init__(
        self,
        cdn_base_url: str = "https://ucarecdn.com",
        concurrency: int = 5,
        timeout_seconds: float = 30.0,
        retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the MediaDownloader.

        Args:
            cdn_base_url: Base URL for media that has only a storage key
            concurrency: Maximum simultaneous fetches
            timeout_seconds: Time limit for one fetch, body included
            retries: Extra attempts after a transient failure
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for a backoff delay
            transport: Optional httpx transport (used in tests)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.cdn_base_url = cdn_base_url.rstrip("/")
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds
        self.retries = retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport

    def media_url(self, item: MediaItem) -> str:
        return item.cdn_url or f"{self.cdn_base_url}/{item.key}/"

    async def download_all(self, media: Sequence[MediaItem]) -> List[DownloadedFile]:
        """
        Download every item, skipping the ones that fail.

        Args:
            media: Items to fetch

        Returns:
            Successful downloads, in input order
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async with httpx.AsyncClient(
            transport=self.transport, follow_redirects=True, timeout=None
        ) as client:

            async def bounded(item: MediaItem) -> Optional[DownloadedFile]:
                async with semaphore:
                    return await self.download_one(client, item)

            results = await asyncio.gather(*(bounded(m) for m in media))

        downloaded = [r for r in results if r is not None]
        if len(downloaded) < len(media):
            logger.warning(f"Skipped {len(media) - len(downloaded)}/{len(media)} media files")
        return downloaded

    async def download_one(
        self, client: httpx.AsyncClient, item: MediaItem
    ) -> Optional[DownloadedFile]:
        """Fetch one item with retry. Returns None if it cannot be fetched."""
        try:
            return await retry_async(
                lambda: self._fetch(client, item),
                max_attempts=self.retries + 1,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                exceptions=(TransientFetchError,),
            )
        except MediaFetchError as e:
            logger.warning(f"Failed to fetch media {item.id}: {e}")
            return None

    async def _fetch(self, client: httpx.AsyncClient, item: MediaItem) -> DownloadedFile:
        url = self.media_url(item)
        try:
            response = await asyncio.wait_for(client.get(url), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise TransientFetchError(item.id, f"timed out after {self.timeout_seconds}s")
        except httpx.HTTPError as e:
            raise TransientFetchError(item.id, f"network error: {e}")

        if response.status_code >= 500:
            raise TransientFetchError(
                item.id, f"HTTP {response.status_code}", response.status_code
            )
        if not response.is_success:
            raise MediaFetchError(item.id, f"HTTP {response.status_code}", response.status_code)

        return DownloadedFile(
            media_id=item.id,
            filename=sanitize_entry_name(item.filename),
            content=response.content,
        )
