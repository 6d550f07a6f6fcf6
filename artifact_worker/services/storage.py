"""Blob storage backends for finished archives."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union
from urllib.parse import quote
from uuid import uuid4

import httpx
from pydantic import BaseModel

from artifact_worker.config import Settings, get_settings
from artifact_worker.utils.errors import TransientUploadError, UploadError
from artifact_worker.utils.retry import with_retry

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = "application/zip"


class StoredObject(BaseModel):
    """A published blob."""

    key: str
    url: str


class BlobStore(Protocol):
    async def upload(self, path: Union[str, Path], filename: str) -> StoredObject: ...

    async def delete(self, key: str) -> None: ...


class SupabaseBlobStore:
    """Stores archives in a public Supabase Storage bucket."""

    def __init__(self, supabase_client: Any, bucket: str = "artifacts", prefix: str = "artifacts") -> None:
        self.supabase = supabase_client
        self.bucket = bucket
        self.prefix = prefix

    async def upload(self, path: Union[str, Path], filename: str) -> StoredObject:
        """
        Upload an archive and return its storage key and public URL.

        Args:
            path: Local archive file
            filename: Name the downloader will see

        Returns:
            StoredObject with key and public URL

        Raises:
            UploadError: If the upload fails
        """
        data = await asyncio.to_thread(Path(path).read_bytes)
        key = f"{self.prefix}/{uuid4().hex}/{filename}"

        try:
            public_url = await asyncio.to_thread(self._put, key, data)
        except Exception as e:
            raise UploadError(f"Failed to upload {filename} to Supabase: {e}")

        logger.info(f"Uploaded archive to {self.bucket}/{key} ({len(data)} bytes)")
        return StoredObject(key=key, url=public_url)

    def _put(self, key: str, data: bytes) -> str:
        bucket = self.supabase.storage.from_(self.bucket)
        bucket.upload(
            path=key,
            file=data,
            file_options={"content-type": ZIP_CONTENT_TYPE},
        )
        return bucket.get_public_url(key)

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.supabase.storage.from_(self.bucket).remove, [key])
        except Exception as e:
            raise UploadError(f"Failed to delete {key} from Supabase: {e}")


class UploadcareBlobStore:
    """Stores archives on Uploadcare via its multipart upload API."""

    UPLOAD_URL = "https://upload.uploadcare.com/base/"
    API_URL = "https://api.uploadcare.com"

    def __init__(
        self,
        public_key: str,
        secret_key: str,
        cdn_base_url: str = "https://ucarecdn.com",
        timeout_seconds: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.public_key = public_key
        self.secret_key = secret_key
        self.cdn_base_url = cdn_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @with_retry(max_attempts=3, base_delay=1.0, exceptions=(TransientUploadError,))
    async def upload(self, path: Union[str, Path], filename: str) -> StoredObject:
        """
        Upload an archive and store it permanently.

        Network errors, 429 and 5xx responses are retried with backoff.

        Raises:
            UploadError: If Uploadcare rejects the upload
        """
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout_seconds
            ) as client:
                with open(path, "rb") as fh:
                    response = await client.post(
                        self.UPLOAD_URL,
                        data={"UPLOADCARE_PUB_KEY": self.public_key, "UPLOADCARE_STORE": "1"},
                        files={"file": (filename, fh, ZIP_CONTENT_TYPE)},
                    )
        except httpx.HTTPError as e:
            raise TransientUploadError(f"HTTP error during upload: {e}")

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientUploadError(response.reason_phrase or response.text, response.status_code)
        if not response.is_success:
            raise UploadError(response.reason_phrase or response.text, response.status_code)

        key = response.json().get("file")
        if not key:
            raise UploadError("No file id in Uploadcare response")

        url = f"{self.cdn_base_url}/{key}/{quote(filename)}"
        logger.info(f"Uploaded archive to Uploadcare: {key}")
        return StoredObject(key=key, url=url)

    async def delete(self, key: str) -> None:
        async with httpx.AsyncClient(transport=self.transport, timeout=30.0) as client:
            response = await client.delete(
                f"{self.API_URL}/files/{key}/storage/",
                headers={
                    "Authorization": f"Uploadcare.Simple {self.public_key}:{self.secret_key}",
                    "Accept": "application/vnd.uploadcare-v0.7+json",
                },
            )
        if not response.is_success and response.status_code != 404:
            raise UploadError(f"Failed to delete {key}", response.status_code)


def create_blob_store(
    supabase_client: Optional[Any] = None, settings: Optional[Settings] = None
) -> BlobStore:
    """
    Create the blob store selected by ``STORAGE_BACKEND``.

    Args:
        supabase_client: Supabase client, required for the supabase backend
        settings: Optional settings (defaults to environment settings)

    Returns:
        Configured blob store
    """
    settings = settings or get_settings()
    if settings.storage_backend == "uploadcare":
        return UploadcareBlobStore(
            public_key=settings.uploadcare_public_key,
            secret_key=settings.uploadcare_secret_key,
            cdn_base_url=settings.media_cdn_base_url,
        )
    if supabase_client is None:
        raise ValueError("Supabase client required for the supabase storage backend")
    return SupabaseBlobStore(supabase_client, bucket=settings.storage_bucket)
