"""Tests for blob storage backends and the artifact uploader."""

import threading
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from artifact_worker.config import Settings
from artifact_worker.models.media import Project
from artifact_worker.services.storage import (
    SupabaseBlobStore,
    UploadcareBlobStore,
    create_blob_store,
)
from artifact_worker.services.uploader import ArtifactUploader, UploadedArtifact
from artifact_worker.utils.errors import TransientUploadError, UploadError


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "job.zip"
    path.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return path


class TestSupabaseBlobStore:
    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, supabase, archive) -> None:
        stored = await SupabaseBlobStore(supabase, bucket="artifacts").upload(archive, "a.zip")

        assert stored.key.startswith("artifacts/")
        assert stored.key.endswith("/a.zip")
        assert stored.url == f"https://storage.test/artifacts/{stored.key}"
        assert supabase.storage.objects[("artifacts", stored.key)] == archive.read_bytes()
        assert supabase.storage.options[("artifacts", stored.key)]["content-type"] == "application/zip"

    @pytest.mark.asyncio
    async def test_uploads_do_not_overwrite(self, supabase, archive) -> None:
        store = SupabaseBlobStore(supabase)
        first = await store.upload(archive, "a.zip")
        second = await store.upload(archive, "a.zip")
        assert first.key != second.key

    @pytest.mark.asyncio
    async def test_upload_runs_off_the_event_loop(self, supabase, archive, monkeypatch) -> None:
        threads = []
        bucket_type = type(supabase.storage.from_("artifacts"))
        upload = bucket_type.upload

        def recording_upload(self, *args, **kwargs):
            threads.append(threading.get_ident())
            return upload(self, *args, **kwargs)

        monkeypatch.setattr(bucket_type, "upload", recording_upload)

        await SupabaseBlobStore(supabase).upload(archive, "a.zip")

        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_storage_failure_raises_upload_error(self, supabase, archive, monkeypatch) -> None:
        def broken_upload(self, *args, **kwargs):
            raise RuntimeError("bucket not found")

        monkeypatch.setattr(type(supabase.storage.from_("artifacts")), "upload", broken_upload)

        with pytest.raises(UploadError, match="bucket not found"):
            await SupabaseBlobStore(supabase).upload(archive, "a.zip")

    @pytest.mark.asyncio
    async def test_delete_removes_object(self, supabase, archive) -> None:
        store = SupabaseBlobStore(supabase)
        stored = await store.upload(archive, "a.zip")

        await store.delete(stored.key)

        assert supabase.storage.objects == {}


class TestUploadcareBlobStore:
    @pytest.mark.asyncio
    async def test_upload_posts_multipart_and_stores(self, archive) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"file": "uuid-1"})

        store = UploadcareBlobStore(
            "pub", "secret", cdn_base_url="https://ucarecdn.com/", transport=httpx.MockTransport(handler)
        )
        stored = await store.upload(archive, "12 Main St.zip")

        assert seen["url"] == UploadcareBlobStore.UPLOAD_URL
        assert b'name="UPLOADCARE_PUB_KEY"' in seen["body"]
        assert b'name="UPLOADCARE_STORE"' in seen["body"]
        assert b'filename="12 Main St.zip"' in seen["body"]
        assert stored.key == "uuid-1"
        assert stored.url == "https://ucarecdn.com/uuid-1/12%20Main%20St.zip"

    @pytest.mark.asyncio
    async def test_rejected_upload_raises(self, archive) -> None:
        store = UploadcareBlobStore(
            "pub", "secret", transport=httpx.MockTransport(lambda r: httpx.Response(403))
        )

        with pytest.raises(UploadError) as exc_info:
            await store.upload(archive, "a.zip")

        assert exc_info.value.status_code == 403
        assert "Forbidden" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rejected_upload_is_not_retried(self, archive) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400)

        store = UploadcareBlobStore("pub", "secret", transport=httpx.MockTransport(handler))

        with patch("artifact_worker.utils.retry.asyncio.sleep", AsyncMock()) as sleep:
            with pytest.raises(UploadError):
                await store.upload(archive, "a.zip")

        assert len(calls) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_errors_are_retried_with_backoff(self, archive) -> None:
        responses = [httpx.Response(503), httpx.Response(429), httpx.Response(200, json={"file": "uuid-2"})]

        store = UploadcareBlobStore(
            "pub", "secret", transport=httpx.MockTransport(lambda r: responses.pop(0))
        )

        with patch("artifact_worker.utils.retry.asyncio.sleep", AsyncMock()) as sleep:
            stored = await store.upload(archive, "a.zip")

        assert stored.key == "uuid-2"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_persistent_outage_raises_after_three_attempts(self, archive) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        store = UploadcareBlobStore("pub", "secret", transport=httpx.MockTransport(handler))

        with patch("artifact_worker.utils.retry.asyncio.sleep", AsyncMock()):
            with pytest.raises(TransientUploadError):
                await store.upload(archive, "a.zip")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_delete_uses_simple_auth(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={})

        store = UploadcareBlobStore("pub", "secret", transport=httpx.MockTransport(handler))
        await store.delete("uuid-1")

        assert seen == {
            "method": "DELETE",
            "url": "https://api.uploadcare.com/files/uuid-1/storage/",
            "auth": "Uploadcare.Simple pub:secret",
        }


class TestCreateBlobStore:
    def test_uploadcare_backend(self) -> None:
        settings = Settings(
            storage_backend="uploadcare", uploadcare_public_key="pub", uploadcare_secret_key="sec"
        )
        assert isinstance(create_blob_store(None, settings), UploadcareBlobStore)

    def test_supabase_backend_requires_client(self, supabase) -> None:
        settings = Settings(storage_backend="supabase", storage_bucket="exports")
        store = create_blob_store(supabase, settings)
        assert isinstance(store, SupabaseBlobStore)
        assert store.bucket == "exports"

        with pytest.raises(ValueError):
            create_blob_store(None, settings)


class TestArtifactUploader:
    @pytest.mark.asyncio
    async def test_names_archive_after_project(self, blob_store, archive) -> None:
        project = Project(id="p1", address_line1="12 Main St", city="Springfield", organization_name="Acme")

        uploaded = await ArtifactUploader(blob_store).upload(archive, project, "a1")

        assert uploaded.filename == "12_Main_St_Springfield_Acme.zip"
        assert uploaded.url == f"https://cdn.test/{uploaded.key}/12_Main_St_Springfield_Acme.zip"
        assert blob_store.uploads[0]["filename"] == uploaded.filename

    @pytest.mark.asyncio
    async def test_discard_failure_is_logged(self, caplog) -> None:
        class BrokenDelete:
            async def delete(self, key: str) -> None:
                raise UploadError("Failed to delete k", 500)

        uploader = ArtifactUploader(BrokenDelete())
        await uploader.discard(UploadedArtifact(key="k", url="u", filename="a.zip"))

        assert "Failed to delete orphaned archive k" in caplog.text
