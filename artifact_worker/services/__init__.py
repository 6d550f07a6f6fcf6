"""Service layer for the artifact worker."""

from artifact_worker.services.archiver import ZipArchiver
from artifact_worker.services.catalog import MediaCatalog
from artifact_worker.services.claimer import JobClaimer
from artifact_worker.services.database import JobStore, get_supabase_client
from artifact_worker.services.downloader import MediaDownloader
from artifact_worker.services.notifier import LoggingNotifier, WebhookNotifier
from artifact_worker.services.processor import ArtifactProcessor
from artifact_worker.services.reaper import StuckJobReaper
from artifact_worker.services.storage import SupabaseBlobStore, UploadcareBlobStore
from artifact_worker.services.uploader import ArtifactUploader
from artifact_worker.services.worker import ArtifactWorker, TickResult, create_artifact_worker

__all__ = [
    "ArtifactProcessor",
    "ArtifactUploader",
    "ArtifactWorker",
    "JobClaimer",
    "JobStore",
    "LoggingNotifier",
    "MediaCatalog",
    "MediaDownloader",
    "StuckJobReaper",
    "SupabaseBlobStore",
    "TickResult",
    "UploadcareBlobStore",
    "WebhookNotifier",
    "ZipArchiver",
    "create_artifact_worker",
    "get_supabase_client",
]
