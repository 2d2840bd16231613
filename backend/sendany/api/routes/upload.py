"""File upload endpoint storing workspace files in the owner's Google Drive."""

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.api.deps import (
    CurrentUser,
    error_response,
    get_credential_refresher,
    get_drive_client,
    get_quota_limits,
    require_user,
)
from sendany.core.logging import get_logger
from sendany.core.security import TokenDecryptionError
from sendany.db import get_db
from sendany.drive.client import GoogleDriveClient
from sendany.drive.exceptions import ReconnectRequiredError
from sendany.drive.oauth import CredentialRefresher
from sendany.schemas.storage import StorageUsage, UploadedDriveFile, UploadResponse
from sendany.services.quota import QuotaLimits
from sendany.services.token_store import NotConnectedError
from sendany.services.upload import (
    FileRecordNotFoundError,
    QuotaExceededError,
    UploadFailedError,
    UploadOrchestrator,
    WorkspaceAccessDeniedError,
    WorkspaceNotFoundError,
)

logger = get_logger(__name__)

router = APIRouter(tags=["upload"])

DEFAULT_MIME_TYPE = "application/octet-stream"

UNREADABLE_CREDENTIALS_MESSAGE = "Stored Google Drive credentials could not be read. Please reconnect your Google Drive."


def _stream_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    size = file.file.seek(0, os.SEEK_END)
    file.file.seek(0)
    return size


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(..., description="File to upload"),
    workspace_id: str = Form(..., description="Target workspace"),
    file_id: str | None = Form(None, description="Existing file record to attach the upload to"),
    user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    drive: GoogleDriveClient = Depends(get_drive_client),
    refresher: CredentialRefresher = Depends(get_credential_refresher),
    limits: QuotaLimits = Depends(get_quota_limits),
) -> UploadResponse:
    """Upload a single file into a workspace.

    Accepts multipart/form-data. The file is streamed to the caller's Google
    Drive, inside a per-workspace folder, after quota checks pass.

    Errors carry ``detail = {reason, message}`` where reason is one of
    ``not_connected``, ``reconnect_required``, ``quota_exceeded:<scope>`` or
    ``upload_failed``.
    """
    orchestrator = UploadOrchestrator(db, drive=drive, refresher=refresher, limits=limits)

    try:
        result = await orchestrator.upload(
            user_id=user.id,
            workspace_id=workspace_id,
            stream=file.file,
            filename=file.filename or "unnamed_file",
            mime_type=file.content_type or DEFAULT_MIME_TYPE,
            file_size=_stream_size(file),
            file_id=file_id,
        )
    except NotConnectedError as e:
        raise error_response(400, e.code, e.message)
    except ReconnectRequiredError as e:
        raise error_response(401, e.code, e.message)
    except TokenDecryptionError as e:
        logger.error("upload_credentials_unreadable", user_id=user.id, error=str(e))
        raise error_response(401, "reconnect_required", UNREADABLE_CREDENTIALS_MESSAGE)
    except QuotaExceededError as e:
        raise error_response(413, e.code, e.message)
    except UploadFailedError as e:
        raise error_response(503 if e.retryable else 502, e.code, e.message)
    except WorkspaceAccessDeniedError as e:
        raise error_response(403, e.code, e.message)
    except (WorkspaceNotFoundError, FileRecordNotFoundError) as e:
        raise error_response(404, e.code, e.message)

    return UploadResponse(
        file_id=result.file_record_id,
        workspace_id=result.workspace_id,
        drive_file=UploadedDriveFile(
            id=result.file.id,
            name=result.file.name,
            size=result.file.size,
            mime_type=result.file.mime_type,
            public_url=result.file.public_url,
            shared=result.file.shared,
        ),
        storage=StorageUsage(used=result.storage_used, limit=result.storage_limit),
    )
