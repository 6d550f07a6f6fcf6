"""Pytest fixtures for artifact worker tests."""

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from artifact_worker.services.archiver import ZipArchiver
from artifact_worker.services.catalog import MediaCatalog
from artifact_worker.services.claimer import JobClaimer
from artifact_worker.services.database import ARTIFACTS_TABLE, JobStore
from artifact_worker.services.downloader import MediaDownloader
from artifact_worker.services.processor import ArtifactProcessor
from artifact_worker.services.reaper import StuckJobReaper
from artifact_worker.services.storage import StoredObject
from artifact_worker.services.uploader import ArtifactUploader
from artifact_worker.services.worker import ArtifactWorker
from artifact_worker.utils.errors import UploadError

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


# ==================== Fake Supabase Client ====================


def _comparable(value: Any) -> Any:
    """Timestamps are stored as ISO strings; compare them as datetimes."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def _matches(row: Dict[str, Any], op: str, field: str, value: Any) -> bool:
    current = row.get(field)
    if op == "eq":
        return current == value
    if op == "is":
        return current is None if value == "null" else current == value
    if current is None:
        return False
    if op == "lt":
        return _comparable(current) < _comparable(value)
    if op == "lte":
        return _comparable(current) <= _comparable(value)
    raise ValueError(f"Unsupported operator: {op}")


class FakeSupabaseResponse:
    """Mock response from Supabase operations."""

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None) -> None:
        self.data = data or []


class FakeSupabaseQuery:
    """One query builder chain against an in-memory table."""

    def __init__(self, client: "FakeSupabaseClient", table_name: str) -> None:
        self._client = client
        self._rows = client.tables.setdefault(table_name, [])
        self._table_name = table_name
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._columns = "*"
        self._action = "select"
        self._payload: Any = None
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None

    def select(self, columns: str = "*") -> "FakeSupabaseQuery":
        self._columns = columns
        return self

    def insert(self, data: Union[Dict[str, Any], List[Dict[str, Any]]]) -> "FakeSupabaseQuery":
        self._action = "insert"
        self._payload = data if isinstance(data, list) else [data]
        return self

    def update(self, data: Dict[str, Any]) -> "FakeSupabaseQuery":
        self._action = "update"
        self._payload = data
        return self

    def delete(self) -> "FakeSupabaseQuery":
        self._action = "delete"
        return self

    def eq(self, field: str, value: Any) -> "FakeSupabaseQuery":
        self._filters.append(lambda row: _matches(row, "eq", field, value))
        return self

    def is_(self, field: str, value: Any) -> "FakeSupabaseQuery":
        self._filters.append(lambda row: _matches(row, "is", field, value))
        return self

    def lt(self, field: str, value: Any) -> "FakeSupabaseQuery":
        self._filters.append(lambda row: _matches(row, "lt", field, value))
        return self

    def lte(self, field: str, value: Any) -> "FakeSupabaseQuery":
        self._filters.append(lambda row: _matches(row, "lte", field, value))
        return self

    def or_(self, filters: str) -> "FakeSupabaseQuery":
        """PostgREST ``or`` syntax: ``col.op.value,col.op.value``."""
        clauses = [clause.split(".", 2) for clause in filters.split(",")]
        self._filters.append(
            lambda row: any(_matches(row, op, field, value) for field, op, value in clauses)
        )
        return self

    def order(self, field: str, desc: bool = False) -> "FakeSupabaseQuery":
        self._order = (field, desc)
        return self

    def limit(self, count: int) -> "FakeSupabaseQuery":
        self._limit = count
        return self

    def execute(self) -> FakeSupabaseResponse:
        self._client.executed.append((self._table_name, self._action))
        if self._client.fail_with is not None:
            raise self._client.fail_with

        if self._action == "insert":
            for row in self._payload:
                self._rows.append(dict(row))
            return FakeSupabaseResponse([dict(r) for r in self._payload])

        matched = [row for row in self._rows if all(f(row) for f in self._filters)]

        if self._action == "update":
            for row in matched:
                row.update(self._payload)
            return FakeSupabaseResponse([dict(r) for r in matched])

        if self._action == "delete":
            for row in matched:
                self._rows.remove(row)
            return FakeSupabaseResponse([dict(r) for r in matched])

        if self._order is not None:
            field, desc = self._order
            matched.sort(key=lambda r: _comparable(r.get(field)), reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]

        if self._columns == "*":
            return FakeSupabaseResponse([dict(r) for r in matched])
        columns = [c.strip() for c in self._columns.split(",")]
        return FakeSupabaseResponse([{c: r.get(c) for c in columns} for r in matched])


class FakeStorageBucket:
    def __init__(self, storage: "FakeStorage", name: str) -> None:
        self._storage = storage
        self.name = name

    def upload(self, path: str, file: bytes, file_options: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        self._storage.objects[(self.name, path)] = file
        self._storage.options[(self.name, path)] = file_options or {}
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/{self.name}/{path}"

    def remove(self, paths: List[str]) -> List[Dict[str, str]]:
        for path in paths:
            self._storage.objects.pop((self.name, path), None)
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self) -> None:
        self.objects: Dict[tuple[str, str], bytes] = {}
        self.options: Dict[tuple[str, str], Dict[str, str]] = {}

    def from_(self, bucket: str) -> FakeStorageBucket:
        return FakeStorageBucket(self, bucket)


class FakeSupabaseClient:
    """In-memory stand-in for ``supabase.Client``."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.storage = FakeStorage()
        self.executed: List[tuple[str, str]] = []
        self.fail_with: Optional[Exception] = None

    def table(self, name: str) -> FakeSupabaseQuery:
        return FakeSupabaseQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(name, [])

    def artifact(self, artifact_id: str) -> Dict[str, Any]:
        return next(r for r in self.rows(ARTIFACTS_TABLE) if r["id"] == artifact_id)


# ==================== Seeding ====================


class Seeder:
    """Inserts catalog and artifact rows into a fake client."""

    def __init__(self, client: FakeSupabaseClient) -> None:
        self.client = client
        self._tick = 0

    def _created_at(self) -> str:
        # Strictly increasing so "oldest first" is deterministic
        self._tick += 1
        return (NOW - timedelta(hours=1) + timedelta(seconds=self._tick)).isoformat()

    def organization(self, name: str = "Acme Realty", org_id: Optional[str] = None) -> Dict[str, Any]:
        row = {"id": org_id or str(uuid.uuid4()), "name": name}
        self.client.rows("organizations").append(row)
        return row

    def project(
        self,
        project_id: Optional[str] = None,
        address_line1: Optional[str] = "12 Main St",
        city: Optional[str] = "Springfield",
        organization_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        row = {
            "id": project_id or str(uuid.uuid4()),
            "address_line1": address_line1,
            "city": city,
            "organization_id": organization_id,
        }
        self.client.rows("projects").append(row)
        return row

    def media(
        self,
        project_id: str,
        media_id: Optional[str] = None,
        filename: str = "photo.jpg",
        type: str = "PHOTO",
        size: Optional[int] = 1024,
        key: Optional[str] = "auto",
        cdn_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        media_id = media_id or str(uuid.uuid4())
        row = {
            "id": media_id,
            "project_id": project_id,
            "key": f"key-{media_id}" if key == "auto" else key,
            "cdn_url": cdn_url,
            "filename": filename,
            "size": size,
            "type": type,
            "created_at": self._created_at(),
        }
        self.client.rows("media").append(row)
        return row

    def artifact(
        self,
        project_id: str,
        artifact_id: Optional[str] = None,
        status: str = "PENDING",
        type: str = "ALL_MEDIA",
        retry_count: int = 0,
        worker_token: Optional[str] = None,
        processing_started_at: Optional[datetime] = None,
        next_attempt_at: Optional[datetime] = None,
        error: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        row = {
            "id": artifact_id or str(uuid.uuid4()),
            "project_id": project_id,
            "status": status,
            "type": type,
            "retry_count": retry_count,
            "worker_token": worker_token,
            "processing_started_at": processing_started_at.isoformat() if processing_started_at else None,
            "next_attempt_at": next_attempt_at.isoformat() if next_attempt_at else None,
            "error": error,
            "key": None,
            "cdn_url": None,
            "filename": None,
            "size": None,
            "created_at": self._created_at(),
        }
        row.update(extra)
        self.client.rows(ARTIFACTS_TABLE).append(row)
        return row


# ==================== Fake Blob Store ====================


class FakeBlobStore:
    """Records uploaded archives before the processor deletes its scratch copy."""

    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.fail_with = fail_with
        self.uploads: List[Dict[str, Any]] = []
        self.deleted: List[str] = []

    async def upload(self, path: Union[str, Path], filename: str) -> StoredObject:
        if self.fail_with is not None:
            raise self.fail_with
        data = Path(path).read_bytes()
        key = f"blob-{len(self.uploads) + 1}"
        self.uploads.append({"key": key, "filename": filename, "data": data, "path": Path(path)})
        return StoredObject(key=key, url=f"https://cdn.test/{key}/{filename}")

    async def delete(self, key: str) -> None:
        self.deleted.append(key)


# ==================== Fixtures ====================


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture
def supabase() -> FakeSupabaseClient:
    return FakeSupabaseClient()


@pytest.fixture
def seed(supabase: FakeSupabaseClient) -> Seeder:
    return Seeder(supabase)


@pytest.fixture
def store(supabase: FakeSupabaseClient) -> JobStore:
    return JobStore(supabase)


@pytest.fixture
def catalog(supabase: FakeSupabaseClient) -> MediaCatalog:
    return MediaCatalog(supabase)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def failing_blob_store() -> FakeBlobStore:
    return FakeBlobStore(fail_with=UploadError("Service Unavailable", 503))


@pytest.fixture
def worker(store, catalog, blob_store, tmp_path, clock) -> ArtifactWorker:
    """A fully wired worker whose CDN serves ``data`` for every file."""
    downloader = MediaDownloader(
        cdn_base_url="https://cdn.test",
        transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"data")),
    )
    processor = ArtifactProcessor(
        store,
        downloader=downloader,
        archiver=ZipArchiver(),
        uploader=ArtifactUploader(blob_store),
        scratch_dir=str(tmp_path),
        clock=clock,
    )
    return ArtifactWorker(
        store,
        JobClaimer(store, catalog, clock=clock),
        StuckJobReaper(store, clock=clock),
        processor,
        poll_interval_seconds=0.01,
    )
