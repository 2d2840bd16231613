"""Upload orchestration for workspace files stored in Google Drive.

Provides:
- Ownership and placeholder validation
- Credential freshness (refresh persisted before use)
- Quota enforcement before any remote write
- Lazy per-workspace folder provisioning
- Streaming upload and metadata/usage bookkeeping
"""

from __future__ import annotations

import enum
from typing import Awaitable, BinaryIO, Callable, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.logging import get_logger
from sendany.drive.client import DriveAccess, DriveFile, GoogleDriveClient, get_drive_client
from sendany.drive.exceptions import (
    AccessTokenRejectedError,
    ReconnectRequiredError,
    RemoteUnavailableError,
)
from sendany.drive.oauth import CredentialRefresher
from sendany.services.credentials import ensure_fresh
from sendany.services.quota import QuotaLimits, QuotaScope, validate
from sendany.services.token_store import CredentialRecord, TokenStore
from sendany.services.workspaces import WorkspaceStore

T = TypeVar("T")

logger = get_logger(__name__)

# Top-level folder holding every workspace folder of a user
APP_FOLDER_NAME = "SendAny"
APP_FOLDER_DESCRIPTION = "Files uploaded to SendAny application"


class UploadStage(str, enum.Enum):
    """Steps of a single upload request, in order."""

    REQUEST_VALIDATION = "request_validation"
    CREDENTIAL_CHECK = "credential_check"
    QUOTA_CHECK = "quota_check"
    FOLDER_RESOLUTION = "folder_resolution"
    UPLOADING = "uploading"
    PERSISTING_METADATA = "persisting_metadata"
    DONE = "done"


class UploadError(Exception):
    """Base exception for upload errors."""

    def __init__(self, message: str, code: str = "upload_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class WorkspaceNotFoundError(UploadError):
    """Raised when the target workspace does not exist."""

    def __init__(self, workspace_id: str):
        super().__init__(f"Workspace {workspace_id} not found", code="workspace_not_found")


class WorkspaceAccessDeniedError(UploadError):
    """Raised when the caller does not own the target workspace."""

    def __init__(self, workspace_id: str):
        super().__init__(f"Not allowed to upload to workspace {workspace_id}", code="access_denied")


class FileRecordNotFoundError(UploadError):
    """Raised when a placeholder file id does not belong to the workspace."""

    def __init__(self, file_id: str):
        super().__init__(f"File {file_id} not found in workspace", code="file_not_found")


class QuotaExceededError(UploadError):
    """Raised when an upload would exceed a storage ceiling."""

    def __init__(self, scope: QuotaScope, message: str):
        self.scope = scope
        super().__init__(message, code=f"quota_exceeded:{scope.value}")


class UploadFailedError(UploadError):
    """Raised when Google Drive fails while provisioning or uploading."""

    def __init__(self, message: str, retryable: bool = False, stage: UploadStage | None = None):
        self.retryable = retryable
        self.stage = stage
        super().__init__(message, code="upload_failed")


class UploadResult(BaseModel):
    """Outcome of a completed upload."""

    file: DriveFile
    file_record_id: str
    workspace_id: str
    folder_id: str
    storage_used: int
    storage_limit: int


def workspace_folder_name(title: str, workspace_id: str) -> str:
    """Name of the Drive folder for a workspace (unique per workspace)."""
    return f"{title} ({workspace_id})"


class UploadOrchestrator:
    """Runs one upload from request validation through usage accounting.

    Every request uses its own credentials and database session; no state is
    shared between concurrent uploads.
    """

    def __init__(
        self,
        db: AsyncSession,
        drive: GoogleDriveClient | None = None,
        refresher: CredentialRefresher | None = None,
        limits: QuotaLimits | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            db: AsyncSession for database operations.
            drive: Drive client, defaults to the shared one.
            refresher: Token refresher, defaults to the configured OAuth client.
            limits: Quota ceilings, defaults to the configured ones.
        """
        self.db = db
        self.drive = drive or get_drive_client()
        self.refresher = refresher or CredentialRefresher()
        self.limits = limits or QuotaLimits.from_settings()
        self.tokens = TokenStore(db)
        self.workspaces = WorkspaceStore(db)

    async def upload(
        self,
        user_id: str,
        workspace_id: str,
        stream: BinaryIO,
        filename: str,
        mime_type: str,
        file_size: int,
        file_id: str | None = None,
    ) -> UploadResult:
        """Upload a file into a workspace's Drive folder.

        Args:
            user_id: Authenticated caller.
            workspace_id: Target workspace, must be owned by the caller.
            stream: Binary content positioned at the start.
            filename: Name for the Drive file (and a new file row).
            mime_type: Content type.
            file_size: Size of the content in bytes.
            file_id: Optional placeholder row to attach the upload to.

        Returns:
            UploadResult with the Drive file and the caller's new usage.

        Raises:
            WorkspaceNotFoundError, WorkspaceAccessDeniedError,
            FileRecordNotFoundError: Invalid target.
            NotConnectedError: The caller has no linked Drive account.
            ReconnectRequiredError: The stored grant is no longer accepted.
            TokenDecryptionError: The stored tokens cannot be decrypted.
            QuotaExceededError: A ceiling would be exceeded.
            UploadFailedError: Google Drive failed.
        """
        stage = UploadStage.REQUEST_VALIDATION
        log = logger.bind(user_id=user_id, workspace_id=workspace_id, filename=filename)

        def enter(next_stage: UploadStage) -> UploadStage:
            log.debug("upload_stage", stage=next_stage.value)
            return next_stage

        try:
            enter(stage)
            workspace = await self.workspaces.get_workspace(workspace_id)
            if workspace is None:
                raise WorkspaceNotFoundError(workspace_id)
            if workspace.user_id != user_id:
                raise WorkspaceAccessDeniedError(workspace_id)
            title = workspace.title
            folder_id = workspace.drive_folder_id

            previous_size = 0
            previous_drive_file_id = None
            if file_id is not None:
                placeholder = await self.workspaces.get_file(file_id)
                if placeholder is None or placeholder.workspace_id != workspace_id:
                    raise FileRecordNotFoundError(file_id)
                previous_size = placeholder.file_size or 0
                previous_drive_file_id = placeholder.drive_file_id

            stage = enter(UploadStage.CREDENTIAL_CHECK)
            record = await self.tokens.require(user_id)
            record = await ensure_fresh(self.tokens, self.refresher, record)

            stage = enter(UploadStage.QUOTA_CHECK)
            workspace_size = await self.workspaces.sum_file_sizes(workspace_id) - previous_size
            user_storage = await self.workspaces.sum_file_sizes_for_user(user_id) - previous_size
            decision = validate(file_size, workspace_size, user_storage, self.limits)
            if not decision.allowed:
                raise QuotaExceededError(decision.scope, decision.reason)

            stage = enter(UploadStage.FOLDER_RESOLUTION)
            if folder_id is None:

                async def provision(access: DriveAccess) -> str:
                    app_folder = await self.drive.find_or_create_folder(
                        access, APP_FOLDER_NAME, description=APP_FOLDER_DESCRIPTION
                    )
                    return await self.drive.find_or_create_folder(
                        access,
                        workspace_folder_name(title, workspace_id),
                        parent_id=app_folder,
                        description=f"Workspace: {title}",
                    )

                record, created_id = await self._with_token_retry(record, provision)
                folder_id = await self.workspaces.update_remote_folder(workspace_id, created_id)
                await self.db.commit()
                log.info("workspace_folder_assigned", folder_id=folder_id)

            stage = enter(UploadStage.UPLOADING)
            seekable = stream.seekable()

            async def send(access: DriveAccess) -> DriveFile:
                if seekable:
                    stream.seek(0)
                return await self.drive.upload(access, stream, filename, mime_type, folder_id)

            record, drive_file = await self._with_token_retry(record, send, retry=seekable)

            stage = enter(UploadStage.PERSISTING_METADATA)
            row = await self.workspaces.record_upload(
                workspace_id,
                drive_file_id=drive_file.id,
                file_size=file_size,
                mime_type=mime_type,
                filename=filename,
                file_id=file_id,
            )
            used = await self.tokens.increment_usage(user_id, file_size - previous_size)
            await self.db.commit()

        except RemoteUnavailableError as e:
            log.error("upload_failed", stage=stage.value, error=e.message, retryable=e.retryable)
            raise UploadFailedError(e.message, retryable=e.retryable, stage=stage) from e
        except Exception as e:
            log.warning("upload_rejected", stage=stage.value, error=str(e), code=getattr(e, "code", None))
            raise

        if previous_drive_file_id and previous_drive_file_id != drive_file.id:
            await self._delete_replaced_file(record.access, previous_drive_file_id)

        enter(UploadStage.DONE)
        log.info(
            "upload_completed",
            drive_file_id=drive_file.id,
            file_id=row.id,
            size=file_size,
            storage_used=used,
        )

        return UploadResult(
            file=drive_file,
            file_record_id=row.id,
            workspace_id=workspace_id,
            folder_id=folder_id,
            storage_used=used if used is not None else user_storage + file_size,
            storage_limit=self.limits.max_user_storage,
        )

    async def _with_token_retry(
        self,
        record: CredentialRecord,
        call: Callable[[DriveAccess], Awaitable[T]],
        retry: bool = True,
    ) -> tuple[CredentialRecord, T]:
        """Run a Drive call, refreshing once if Google rejects the access token.

        Returns the record actually used alongside the call's result.

        Raises:
            ReconnectRequiredError: If the token is rejected again after a
                forced refresh, or a retry is not possible.
        """
        try:
            return record, await call(record.access)
        except AccessTokenRejectedError as e:
            if not retry:
                raise ReconnectRequiredError("Google Drive rejected the access token") from e
            logger.warning("access_token_rejected", user_id=record.user_id, error=e.message)

        record = await ensure_fresh(self.tokens, self.refresher, record, force=True)
        try:
            return record, await call(record.access)
        except AccessTokenRejectedError as e:
            raise ReconnectRequiredError("Google Drive rejected a freshly refreshed access token") from e

    async def _delete_replaced_file(self, access: DriveAccess, drive_file_id: str) -> None:
        try:
            await self.drive.delete_file(access, drive_file_id)
        except Exception as e:
            logger.warning("replaced_file_delete_failed", drive_file_id=drive_file_id, error=str(e))
