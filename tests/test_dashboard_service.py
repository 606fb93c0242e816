import datetime
import os
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock, MagicMock

from core.config import settings
from core.errors import StorageError, SignInFailed
from core.models import FileRecord, User
from core.storage import StorageClient
from services.dashboard_service.app import main as dashboard
from services.dashboard_service.app.catalog import CatalogViewModel
from services.dashboard_service.app.session import DashboardSession

USER = User(id="u1", email="u1@example.com")


@pytest.fixture
def client():
    with patch.object(settings, "SUPABASE_SERVICE_KEY", None):
        with TestClient(dashboard.app) as c:
            yield c


@pytest.fixture
def records():
    updated = datetime.datetime(2024, 1, 5, 15, 4, tzinfo=datetime.timezone.utc)
    return [
        FileRecord(id="1", name="u1/cat.png", mime_type="image/png", size_bytes=1000, updated_at=updated),
        FileRecord(id="2", name="u1/report.pdf", mime_type="application/pdf", size_bytes=1536, updated_at=updated),
    ]


@pytest.fixture
def session(records):
    session = DashboardSession(MagicMock())
    session.user = USER
    session.store = AsyncMock(spec=StorageClient)
    session.store.list_files.return_value = records
    session.catalog = CatalogViewModel(session.store)
    return session


# --- HTTP endpoints ---
def test_read_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    json_response = response.json()
    assert json_response["status"] == "success"
    assert "Access the Gradio interface at /ui" in json_response["message"]


def test_health_check(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    json_response = response.json()
    assert json_response["status"] == "success"
    assert json_response["data"]["bucket"] == "files"
    assert json_response["data"]["bucket_ready"] is False


# --- Files tab ---
@pytest.mark.asyncio
async def test_refresh_files_ui(session):
    status, rows, selector, summary = await dashboard.refresh_files_ui(session, "", "all")

    assert status == ""
    assert rows[0][:3] == ["cat.png", "Image", "1000 Bytes"]
    assert rows[1][:3] == ["report.pdf", "PDF", "1.5 KB"]
    assert selector["choices"] == [("cat.png (1000 Bytes)", "1"), ("report.pdf (1.5 KB)", "2")]
    assert summary == "Showing 2 of 2 files from cloud storage"


@pytest.mark.asyncio
async def test_refresh_files_ui_requires_sign_in():
    status, rows, _, _ = await dashboard.refresh_files_ui(None, "", "all")
    assert status == "Please sign in first."
    assert rows == []


@pytest.mark.asyncio
async def test_refresh_files_ui_reports_load_failure(session):
    session.store.list_files.side_effect = StorageError("Network down")
    status, rows, _, summary = await dashboard.refresh_files_ui(session, "", "all")
    assert status == "Network down"
    assert rows == []
    assert "No files in cloud storage yet" in summary


@pytest.mark.asyncio
async def test_filter_files_ui(session):
    await session.catalog.load(USER)
    _, rows, _, summary = dashboard.filter_files_ui(session, "report", "document")
    assert [r[0] for r in rows] == ["report.pdf"]
    assert summary == "Showing 1 of 2 files from cloud storage"

    _, rows, _, summary = dashboard.filter_files_ui(session, "nothing", "all")
    assert rows == []
    assert "No files match your search" in summary


@pytest.mark.asyncio
async def test_delete_requires_confirmation(session):
    await session.catalog.load(USER)
    status, rows, _, _, _ = await dashboard.delete_file_ui(session, "1", False)
    assert "cannot be undone" in status
    assert len(rows) == 2
    session.store.remove.assert_not_called()


@pytest.mark.asyncio
async def test_delete_confirmed(session):
    await session.catalog.load(USER)
    status, rows, _, _, confirm = await dashboard.delete_file_ui(session, "1", True)
    assert status == "Deleted cat.png."
    assert [r[0] for r in rows] == ["report.pdf"]
    assert confirm["value"] is False
    session.store.remove.assert_awaited_once_with(["u1/cat.png"])


@pytest.mark.asyncio
async def test_delete_failure_keeps_file(session):
    await session.catalog.load(USER)
    session.store.remove.side_effect = StorageError("Permission denied")
    status, rows, _, _, _ = await dashboard.delete_file_ui(session, "1", True)
    assert status == "Permission denied"
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_download_file_ui_writes_local_copy(session):
    await session.catalog.load(USER)
    session.store.download.return_value = b"hello"

    status, local_path = await dashboard.download_file_ui(session, "1")

    assert status.startswith("Downloaded cat.png")
    assert os.path.basename(local_path) == "cat.png"
    with open(local_path, 'rb') as f:
        assert f.read() == b"hello"


@pytest.mark.asyncio
async def test_downloads_reuse_one_directory_per_session(session):
    await session.catalog.load(USER)
    session.store.download.return_value = b"data"

    _, first_path = await dashboard.download_file_ui(session, "1")
    _, second_path = await dashboard.download_file_ui(session, "2")

    assert os.path.dirname(first_path) == os.path.dirname(second_path)
    assert not os.path.exists(first_path)
    assert os.listdir(os.path.dirname(second_path)) == ["report.pdf"]

    session.identity = AsyncMock()
    await dashboard.sign_out_ui(session)
    assert not os.path.exists(os.path.dirname(second_path))


@pytest.mark.asyncio
async def test_download_without_selection(session):
    status, local_path = await dashboard.download_file_ui(session, None)
    assert status == "Please select a file to download."
    assert local_path is None


# --- Upload tab ---
@pytest.mark.asyncio
async def test_upload_files_ui_success(session, tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"png")
    progress = MagicMock()

    status, upload_update, rows, _, _ = await dashboard.upload_files_ui(session, [str(path)], "image", progress=progress)

    assert status == "Successfully uploaded 1 file(s) to the cloud!"
    assert upload_update["value"] is None
    assert len(rows) == 2
    session.store.upload.assert_awaited_once()
    progress.assert_any_call(1.0, desc="100% complete - Uploading to secure cloud...")


@pytest.mark.asyncio
async def test_upload_files_ui_rejects_oversize(session, tmp_path):
    path = tmp_path / "movie.mp4"
    with open(path, "wb") as f:
        f.truncate(60_000_000)

    status, _, _, _, _ = await dashboard.upload_files_ui(session, [str(path)], "any", progress=MagicMock())

    assert "too large" in status
    session.store.upload.assert_not_called()


@pytest.mark.asyncio
async def test_upload_files_ui_batch_failure(session, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"notes")
    session.store.upload.side_effect = StorageError("Payload too large")

    status, _, _, _, _ = await dashboard.upload_files_ui(session, [str(path)], "any", progress=MagicMock())

    assert status == "Payload too large"


@pytest.mark.asyncio
async def test_upload_files_ui_reports_failed_refresh(session, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"notes")
    session.store.list_files.side_effect = StorageError("Network down")

    status, upload_update, _, _, _ = await dashboard.upload_files_ui(session, [str(path)], "any", progress=MagicMock())

    assert status.startswith("Successfully uploaded 1 file(s) to the cloud!")
    assert "could not be refreshed: Network down" in status
    assert upload_update["value"] is None


def test_upload_hint_ui():
    assert dashboard.upload_hint_ui("archive") == "Accepted: .zip, .rar, .7z, .tar, .gz"
    assert "Max 50MB" in dashboard.upload_hint_ui("any")


# --- Account tab ---
@pytest.mark.asyncio
async def test_sign_in_ui_opens_session_and_loads_files(session):
    session.user = None
    session.identity = AsyncMock()
    session.identity.sign_in.return_value = USER

    with patch.object(DashboardSession, "open", new_callable=AsyncMock) as mock_open:
        mock_open.return_value = session
        status, returned_session, rows, _, _ = await dashboard.sign_in_ui("u1@example.com", "secret123", None)

    assert status == "Signed in as u1@example.com."
    assert returned_session is session
    assert session.user == USER
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_sign_in_ui_failure(session):
    session.user = None
    session.identity = AsyncMock()
    session.identity.sign_in.side_effect = SignInFailed("Invalid login credentials")

    status, returned_session, rows, _, _ = await dashboard.sign_in_ui("u1@example.com", "bad", session)

    assert status == "Sign in failed: Invalid login credentials"
    assert returned_session is session
    assert rows == []


@pytest.mark.asyncio
async def test_sign_in_ui_without_configuration():
    with patch.object(DashboardSession, "open", new_callable=AsyncMock) as mock_open:
        mock_open.side_effect = ValueError("Supabase URL or Anon Key not configured")
        status, returned_session, _, _, _ = await dashboard.sign_in_ui("u1@example.com", "secret123", None)
    assert status.startswith("Configuration error")
    assert returned_session is None


@pytest.mark.asyncio
async def test_sign_out_ui_clears_catalog(session):
    await session.catalog.load(USER)
    session.identity = AsyncMock()

    status, returned_session, rows, _, _ = await dashboard.sign_out_ui(session)

    assert status == "Signed out."
    assert returned_session.user is None
    assert returned_session.catalog.snapshot == []
    assert rows == []


# --- Usage & setup tabs ---
@pytest.mark.asyncio
async def test_storage_stats_ui(session):
    markdown = await dashboard.storage_stats_ui(session)
    assert "**Total Files:** 2" in markdown
    assert "**Storage Used:** 2.48 KB" in markdown
    assert "**Images:** 1 file(s), 1000 Bytes" in markdown


@pytest.mark.asyncio
async def test_storage_check_ui(session):
    session.store.bucket_name = "files"
    session.store.list_buckets.return_value = ["files"]
    session.identity = AsyncMock()
    session.identity.get_current_user.return_value = USER
    markdown = await dashboard.storage_check_ui(session)
    assert "Perfect!" in markdown


@pytest.mark.asyncio
async def test_storage_check_ui_expired_session(session):
    session.identity = AsyncMock()
    session.identity.get_current_user.return_value = None
    markdown = await dashboard.storage_check_ui(session)
    assert "User not authenticated" in markdown
    assert session.user is None
