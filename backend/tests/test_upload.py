"""Tests for UploadOrchestrator - quota-checked uploads into workspace folders.

Tests cover:
- First upload provisioning the app and workspace folders
- Folder reuse on later uploads
- Quota rejection before any remote call
- Token refresh persisted before use, and forced refresh on rejection
- Placeholder re-upload accounting
- Failure handling leaving metadata untouched
"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from sendany.core.config import GB, MB
from sendany.db.models import FileType, WorkspaceFile
from sendany.drive.client import DriveFile
from sendany.drive.exceptions import (
    AccessTokenRejectedError,
    ReconnectRequiredError,
    RemoteUnavailableError,
)
from sendany.drive.oauth import CredentialRefresher, TokenRefresh
from sendany.services.quota import QuotaLimits, QuotaScope
from sendany.services.token_store import NotConnectedError, TokenStore
from sendany.services.upload import (
    APP_FOLDER_NAME,
    FileRecordNotFoundError,
    QuotaExceededError,
    UploadFailedError,
    UploadOrchestrator,
    WorkspaceAccessDeniedError,
    WorkspaceNotFoundError,
)
from sendany.services.workspaces import WorkspaceStore

LIMITS = QuotaLimits(max_file_size=100 * MB, max_workspace_size=500 * MB, max_user_storage=5 * GB)


def _drive_file(file_id: str = "drive-file-1", size: int = 10 * MB) -> DriveFile:
    return DriveFile(
        id=file_id,
        name="report.pdf",
        size=size,
        mime_type="application/pdf",
        public_url=f"https://drive.google.com/uc?export=download&id={file_id}",
    )


@pytest.fixture
def drive() -> MagicMock:
    drive = MagicMock()
    drive.find_or_create_folder = AsyncMock(side_effect=["app-folder", "ws-folder"])
    drive.upload = AsyncMock(return_value=_drive_file())
    drive.delete_file = AsyncMock()
    return drive


@pytest.fixture
def refresher() -> MagicMock:
    refresher = MagicMock()
    refresher.is_stale = CredentialRefresher.is_stale
    refresher.refresh = AsyncMock(
        return_value=TokenRefresh(
            access_token="refreshed-access",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
    )
    return refresher


@pytest.fixture
def orchestrator(db_session, drive, refresher) -> UploadOrchestrator:
    return UploadOrchestrator(db_session, drive=drive, refresher=refresher, limits=LIMITS)


async def _upload(orchestrator, workspace, size: int = 10 * MB, file_id: str | None = None, user_id: str = "user-1"):
    return await orchestrator.upload(
        user_id=user_id,
        workspace_id=workspace.id,
        stream=io.BytesIO(b"x"),
        filename="report.pdf",
        mime_type="application/pdf",
        file_size=size,
        file_id=file_id,
    )


async def _file_rows(db_session, workspace) -> list[WorkspaceFile]:
    result = await db_session.execute(
        select(WorkspaceFile)
        .where(WorkspaceFile.workspace_id == workspace.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class TestFirstUpload:
    """Tests for the happy path."""

    async def test_provisions_folders_and_records_file(
        self, orchestrator, db_session, drive, make_workspace, make_credentials
    ):
        """Scenario: fresh token, no folder yet, quota available."""
        await make_credentials(total_storage_used=0)
        workspace = await make_workspace(title="Notes")

        result = await _upload(orchestrator, workspace)

        assert result.file.id == "drive-file-1"
        assert result.folder_id == "ws-folder"
        assert result.storage_used == 10 * MB
        assert result.storage_limit == 5 * GB

        first, second = drive.find_or_create_folder.await_args_list
        assert first.args[1] == APP_FOLDER_NAME
        assert second.args[1] == f"Notes ({workspace.id})"
        assert second.kwargs["parent_id"] == "app-folder"
        assert drive.upload.await_args.args[4] == "ws-folder"

        stored = await WorkspaceStore(db_session).get_workspace(workspace.id)
        assert stored.drive_folder_id == "ws-folder"

        rows = await _file_rows(db_session, workspace)
        assert len(rows) == 1
        assert rows[0].drive_file_id == "drive-file-1"
        assert rows[0].file_size == 10 * MB
        assert rows[0].file_type == FileType.FILE
        assert (await TokenStore(db_session).get("user-1")).total_storage_used == 10 * MB

    async def test_existing_folder_is_reused(
        self, orchestrator, drive, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="existing-folder")

        result = await _upload(orchestrator, workspace)

        assert result.folder_id == "existing-folder"
        drive.find_or_create_folder.assert_not_called()
        assert drive.upload.await_args.args[4] == "existing-folder"

    async def test_usage_accumulates_across_uploads(
        self, orchestrator, db_session, drive, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        drive.upload.side_effect = [_drive_file("a"), _drive_file("b")]

        await _upload(orchestrator, workspace, size=10 * MB)
        result = await _upload(orchestrator, workspace, size=5 * MB)

        assert result.storage_used == 15 * MB
        assert len(await _file_rows(db_session, workspace)) == 2


class TestValidation:
    """Tests for request validation."""

    async def test_missing_workspace(self, orchestrator, make_credentials):
        await make_credentials()
        with pytest.raises(WorkspaceNotFoundError):
            await orchestrator.upload("user-1", "missing", io.BytesIO(b"x"), "a", "text/plain", 1)

    async def test_workspace_of_another_user(self, orchestrator, drive, make_workspace, make_credentials):
        await make_credentials()
        workspace = await make_workspace(user_id="someone-else")

        with pytest.raises(WorkspaceAccessDeniedError):
            await _upload(orchestrator, workspace)
        drive.upload.assert_not_called()

    async def test_anonymous_workspace_rejects_uploads(self, orchestrator, make_workspace, make_credentials):
        await make_credentials()
        workspace = await make_workspace(user_id=None)

        with pytest.raises(WorkspaceAccessDeniedError):
            await _upload(orchestrator, workspace)

    async def test_placeholder_from_other_workspace(
        self, orchestrator, make_workspace, make_file, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace()
        other = await make_workspace()
        foreign = await make_file(other, file_size=1)

        with pytest.raises(FileRecordNotFoundError):
            await _upload(orchestrator, workspace, file_id=foreign.id)


class TestCredentials:
    """Tests for the credential check."""

    async def test_not_connected_makes_no_remote_calls(self, orchestrator, drive, make_workspace):
        workspace = await make_workspace()

        with pytest.raises(NotConnectedError):
            await _upload(orchestrator, workspace)

        drive.find_or_create_folder.assert_not_called()
        drive.upload.assert_not_called()

    async def test_stale_token_is_refreshed_and_persisted_before_use(
        self, orchestrator, db_session, drive, refresher, make_workspace, make_credentials
    ):
        """Scenario: token expired a minute ago."""
        await make_credentials(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        workspace = await make_workspace(drive_folder_id="folder")

        await _upload(orchestrator, workspace)

        refresher.refresh.assert_awaited_once_with("refresh-token")
        used_access = drive.upload.await_args.args[0]
        assert used_access.access_token == "refreshed-access"
        assert used_access.refresh_token == "refresh-token"

        stored = await TokenStore(db_session).get("user-1")
        assert stored.access_token == "refreshed-access"
        assert stored.refresh_token == "refresh-token"

    async def test_revoked_grant_requires_reconnect(
        self, orchestrator, drive, refresher, make_workspace, make_credentials
    ):
        await make_credentials(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        workspace = await make_workspace()
        refresher.refresh.side_effect = ReconnectRequiredError()

        with pytest.raises(ReconnectRequiredError):
            await _upload(orchestrator, workspace)

        drive.upload.assert_not_called()

    async def test_rejected_token_gets_one_forced_refresh(
        self, orchestrator, drive, refresher, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        drive.upload.side_effect = [AccessTokenRejectedError(), _drive_file()]

        result = await _upload(orchestrator, workspace)

        assert result.file.id == "drive-file-1"
        refresher.refresh.assert_awaited_once()
        assert drive.upload.await_count == 2
        assert drive.upload.await_args.args[0].access_token == "refreshed-access"

    async def test_second_rejection_requires_reconnect(
        self, orchestrator, db_session, drive, refresher, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        drive.upload.side_effect = AccessTokenRejectedError()

        with pytest.raises(ReconnectRequiredError):
            await _upload(orchestrator, workspace)

        refresher.refresh.assert_awaited_once()
        assert await _file_rows(db_session, workspace) == []


class TestQuota:
    """Tests for quota enforcement."""

    async def test_file_too_large(self, orchestrator, drive, make_workspace, make_credentials):
        """Scenario: 150 MB against the 100 MB per-file ceiling."""
        await make_credentials()
        workspace = await make_workspace()

        with pytest.raises(QuotaExceededError) as exc_info:
            await _upload(orchestrator, workspace, size=150 * MB)

        assert exc_info.value.code == "quota_exceeded:file"
        assert exc_info.value.scope == QuotaScope.FILE
        drive.find_or_create_folder.assert_not_called()
        drive.upload.assert_not_called()

    async def test_workspace_full(
        self, orchestrator, db_session, drive, make_workspace, make_file, make_credentials
    ):
        """Scenario: workspace holds 480 MB, 50 MB more would exceed 500 MB."""
        await make_credentials(total_storage_used=480 * MB)
        workspace = await make_workspace()
        for _ in range(6):
            await make_file(workspace, file_size=80 * MB)

        with pytest.raises(QuotaExceededError) as exc_info:
            await _upload(orchestrator, workspace, size=50 * MB)

        assert exc_info.value.code == "quota_exceeded:workspace"
        drive.find_or_create_folder.assert_not_called()
        drive.upload.assert_not_called()
        assert (await TokenStore(db_session).get("user-1")).total_storage_used == 480 * MB

    async def test_user_storage_counts_all_workspaces(
        self, orchestrator, make_workspace, make_file, make_credentials
    ):
        await make_credentials()
        limits = QuotaLimits(max_file_size=100 * MB, max_workspace_size=500 * MB, max_user_storage=200 * MB)
        orchestrator.limits = limits
        first = await make_workspace()
        second = await make_workspace()
        await make_file(first, file_size=100 * MB)
        await make_file(second, file_size=90 * MB)

        with pytest.raises(QuotaExceededError) as exc_info:
            await _upload(orchestrator, second, size=20 * MB)

        assert exc_info.value.code == "quota_exceeded:user"

    async def test_quota_uses_file_rows_not_cached_counter(
        self, orchestrator, make_workspace, make_credentials
    ):
        """A drifted cached counter never blocks an upload."""
        await make_credentials(total_storage_used=5 * GB)
        workspace = await make_workspace(drive_folder_id="folder")

        result = await _upload(orchestrator, workspace)

        assert result.file.id == "drive-file-1"


class TestPlaceholder:
    """Tests for uploads attached to an existing file row."""

    async def test_reupload_charges_only_the_difference(
        self, orchestrator, db_session, drive, make_workspace, make_file, make_credentials
    ):
        await make_credentials(total_storage_used=30 * MB)
        workspace = await make_workspace(drive_folder_id="folder")
        placeholder = await make_file(workspace, file_size=30 * MB, drive_file_id="old-drive-file")
        drive.upload.return_value = _drive_file("new-drive-file", size=40 * MB)

        result = await _upload(orchestrator, workspace, size=40 * MB, file_id=placeholder.id)

        assert result.file_record_id == placeholder.id
        assert result.storage_used == 40 * MB
        rows = await _file_rows(db_session, workspace)
        assert len(rows) == 1
        assert rows[0].drive_file_id == "new-drive-file"
        assert rows[0].file_size == 40 * MB
        drive.delete_file.assert_awaited_once()
        assert drive.delete_file.await_args.args[1] == "old-drive-file"

    async def test_reupload_not_double_counted_in_quota(
        self, orchestrator, make_workspace, make_file, make_credentials
    ):
        """Replacing 30 MB with 40 MB in a 480 MB workspace stays under 500 MB."""
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        for _ in range(5):
            await make_file(workspace, file_size=90 * MB)
        placeholder = await make_file(workspace, file_size=30 * MB)

        result = await _upload(orchestrator, workspace, size=40 * MB, file_id=placeholder.id)

        assert result.file_record_id == placeholder.id

    async def test_failed_cleanup_of_replaced_file_is_ignored(
        self, orchestrator, drive, make_workspace, make_file, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        placeholder = await make_file(workspace, file_size=1, drive_file_id="old")
        drive.delete_file.side_effect = RemoteUnavailableError("boom")

        result = await _upload(orchestrator, workspace, file_id=placeholder.id)

        assert result.file.id == "drive-file-1"

    async def test_unexpected_cleanup_error_keeps_committed_upload(
        self, orchestrator, db_session, drive, make_workspace, make_file, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace(drive_folder_id="folder")
        placeholder = await make_file(workspace, file_size=1, drive_file_id="old")
        drive.delete_file.side_effect = KeyError("id")

        result = await _upload(orchestrator, workspace, file_id=placeholder.id)

        assert result.file_record_id == placeholder.id
        rows = await _file_rows(db_session, workspace)
        assert rows[0].drive_file_id == "drive-file-1"


class TestFailures:
    """Tests for remote failures."""

    async def test_upload_failure_keeps_folder_but_writes_no_metadata(
        self, orchestrator, db_session, drive, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace()
        drive.upload.side_effect = RemoteUnavailableError("HTTP 503", retryable=True, status=503)

        with pytest.raises(UploadFailedError) as exc_info:
            await _upload(orchestrator, workspace)

        assert exc_info.value.code == "upload_failed"
        assert exc_info.value.retryable is True
        assert await _file_rows(db_session, workspace) == []
        assert (await TokenStore(db_session).get("user-1")).total_storage_used == 0

        # The folder survives, so a retry does not provision again
        stored = await WorkspaceStore(db_session).get_workspace(workspace.id)
        assert stored.drive_folder_id == "ws-folder"

    async def test_retry_after_failure_reuses_folder(
        self, orchestrator, drive, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace()
        drive.upload.side_effect = [RemoteUnavailableError("HTTP 500", status=500), _drive_file()]

        with pytest.raises(UploadFailedError):
            await _upload(orchestrator, workspace)
        result = await _upload(orchestrator, workspace)

        assert result.folder_id == "ws-folder"
        assert drive.find_or_create_folder.await_count == 2

    async def test_folder_failure_is_upload_failure(
        self, orchestrator, drive, make_workspace, make_credentials
    ):
        await make_credentials()
        workspace = await make_workspace()
        drive.find_or_create_folder.side_effect = RemoteUnavailableError("HTTP 403", retryable=False, status=403)

        with pytest.raises(UploadFailedError) as exc_info:
            await _upload(orchestrator, workspace)

        assert exc_info.value.retryable is False
        drive.upload.assert_not_called()
