"""Application settings from environment variables."""

import tempfile
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # Supabase (job store, media catalog, default blob store)
    supabase_url: str = ""
    supabase_key: str = ""

    # Blob storage
    storage_backend: Literal["supabase", "uploadcare"] = "supabase"
    storage_bucket: str = "artifacts"
    uploadcare_public_key: str = ""
    uploadcare_secret_key: str = ""
    media_cdn_base_url: str = "https://ucarecdn.com"

    # Worker loop
    poll_interval_seconds: float = 5.0
    processing_timeout_seconds: float = 300.0
    stuck_job_batch_size: int = 10

    # Retry policy
    max_retries: int = 3
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0

    # Downloads
    download_concurrency: int = 5
    download_timeout_seconds: float = 30.0
    download_retries: int = 2

    # Guardrails
    max_media_files_per_zip: int = 500
    max_zip_size_bytes: int = 2 * 1024 * 1024 * 1024

    # Archive
    scratch_dir: str = ""
    zip_compression_level: int = 5

    # Notifications
    notification_webhook_url: str = ""

    log_level: str = "INFO"

    model_config = {"env_file": ".env"}

    @property
    def storage_configured(self) -> bool:
        """Whether the selected blob store has credentials."""
        if self.storage_backend == "uploadcare":
            return bool(self.uploadcare_public_key and self.uploadcare_secret_key)
        return bool(self.supabase_url and self.supabase_key)

    @property
    def scratch_path(self) -> str:
        return self.scratch_dir or tempfile.gettempdir()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
