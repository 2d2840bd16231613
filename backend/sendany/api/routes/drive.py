"""Google Drive connection status and usage endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.api.deps import (
    CurrentUser,
    error_response,
    get_credential_refresher,
    get_current_user,
    get_drive_client,
    get_oauth,
    get_quota_limits,
    require_user,
)
from sendany.core.logging import get_logger
from sendany.core.security import TokenDecryptionError
from sendany.db import get_db
from sendany.drive.client import GoogleDriveClient
from sendany.drive.exceptions import ReconnectRequiredError, RemoteUnavailableError
from sendany.drive.oauth import CredentialRefresher, GoogleOAuth
from sendany.schemas.storage import DriveStatusResponse, QuotaLimitsResponse, WorkspaceUsageResponse
from sendany.services.credentials import ensure_fresh
from sendany.services.quota import QuotaLimits
from sendany.services.token_store import NotConnectedError, TokenStore
from sendany.services.workspaces import WorkspaceStore

logger = get_logger(__name__)

router = APIRouter(prefix="/drive", tags=["drive"])


def _limits_response(limits: QuotaLimits) -> QuotaLimitsResponse:
    return QuotaLimitsResponse(
        max_file_size=limits.max_file_size,
        max_workspace_size=limits.max_workspace_size,
        max_user_storage=limits.max_user_storage,
    )


@router.get("/status", response_model=DriveStatusResponse)
async def get_drive_status(
    user: CurrentUser | None = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    oauth: GoogleOAuth = Depends(get_oauth),
    limits: QuotaLimits = Depends(get_quota_limits),
) -> DriveStatusResponse:
    """Report whether uploads are possible for the caller and how much is used.

    Never fails: problems are reported through ``available``/``reason``.
    """
    status = DriveStatusResponse(
        available=False,
        connected=False,
        limit=limits.max_user_storage,
        limits=_limits_response(limits),
    )

    if not oauth.configured:
        status.reason = "Google Drive integration not configured"
        return status

    status.available = True
    if user is None:
        status.reason = "User not authenticated"
        return status

    try:
        record = await TokenStore(db).get(user.id)
    except TokenDecryptionError as e:
        logger.error("drive_status_credentials_unreadable", user_id=user.id, error=str(e))
        status.available = False
        status.reason = "Failed to check Google Drive status"
        return status

    if record is None:
        status.reason = "Google Drive not connected"
        return status

    status.connected = True
    status.drive_email = record.drive_email
    status.used = record.total_storage_used
    status.percentage = round(record.total_storage_used / limits.max_user_storage * 100, 1)
    return status


@router.get("/workspaces/{workspace_id}/usage", response_model=WorkspaceUsageResponse)
async def get_workspace_usage(
    workspace_id: str,
    remote: bool = Query(False, description="Also measure the Drive folder"),
    user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    drive: GoogleDriveClient = Depends(get_drive_client),
    refresher: CredentialRefresher = Depends(get_credential_refresher),
    limits: QuotaLimits = Depends(get_quota_limits),
) -> WorkspaceUsageResponse:
    """Get the stored size of a workspace, optionally compared with its Drive folder."""
    workspaces = WorkspaceStore(db)
    workspace = await workspaces.get_workspace(workspace_id)
    if workspace is None:
        raise error_response(404, "workspace_not_found", f"Workspace {workspace_id} not found")
    if workspace.user_id != user.id:
        raise error_response(403, "access_denied", f"Not allowed to read workspace {workspace_id}")

    response = WorkspaceUsageResponse(
        workspace_id=workspace_id,
        drive_folder_id=workspace.drive_folder_id,
        used=await workspaces.sum_file_sizes(workspace_id),
        limit=limits.max_workspace_size,
    )
    if not remote or workspace.drive_folder_id is None:
        return response

    tokens = TokenStore(db)
    try:
        record = await ensure_fresh(tokens, refresher, await tokens.require(user.id))
        response.remote_size = await drive.folder_size(record.access, workspace.drive_folder_id)
    except NotConnectedError as e:
        raise error_response(400, e.code, e.message)
    except ReconnectRequiredError as e:
        raise error_response(401, e.code, e.message)
    except TokenDecryptionError as e:
        logger.error("workspace_usage_credentials_unreadable", user_id=user.id, error=str(e))
        raise error_response(
            401,
            "reconnect_required",
            "Stored Google Drive credentials could not be read. Please reconnect your Google Drive.",
        )
    except RemoteUnavailableError as e:
        raise error_response(503 if e.retryable else 502, e.code, e.message)

    return response
