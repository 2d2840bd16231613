"""Expiry cleanup endpoints for an external scheduler."""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.api.deps import error_response, get_credential_refresher, get_drive_client
from sendany.core.config import settings
from sendany.core.logging import get_logger
from sendany.db import get_db
from sendany.drive.client import GoogleDriveClient
from sendany.drive.oauth import CredentialRefresher
from sendany.schemas.storage import (
    CleanupPreviewResponse,
    CleanupResponse,
    ExpiredWorkspaceResponse,
)
from sendany.services.reaper import ExpiryReaper

logger = get_logger(__name__)

router = APIRouter(prefix="/cleanup", tags=["cleanup"])


async def verify_cleanup_key(x_api_key: str | None = Header(None)) -> None:
    """Check the shared secret sent by the scheduler."""
    if not settings.cleanup_api_key:
        raise error_response(403, "cleanup_disabled", "Cleanup API key not configured. Set SENDANY_CLEANUP_API_KEY")
    if not x_api_key or not secrets.compare_digest(x_api_key, settings.cleanup_api_key):
        logger.warning("cleanup_unauthorized")
        raise error_response(401, "unauthorized", "Invalid or missing X-API-Key header")


@router.post("", response_model=CleanupResponse, dependencies=[Depends(verify_cleanup_key)])
async def run_cleanup(
    db: AsyncSession = Depends(get_db),
    drive: GoogleDriveClient = Depends(get_drive_client),
    refresher: CredentialRefresher = Depends(get_credential_refresher),
) -> CleanupResponse:
    """Delete every expired workspace and its Google Drive folder."""
    result = await ExpiryReaper(db, drive=drive, refresher=refresher).run_once()
    return CleanupResponse(**result.model_dump())


@router.get("", response_model=CleanupPreviewResponse, dependencies=[Depends(verify_cleanup_key)])
async def preview_cleanup(
    db: AsyncSession = Depends(get_db),
    drive: GoogleDriveClient = Depends(get_drive_client),
    refresher: CredentialRefresher = Depends(get_credential_refresher),
) -> CleanupPreviewResponse:
    """List the workspaces the next cleanup would delete, without deleting."""
    expired = await ExpiryReaper(db, drive=drive, refresher=refresher).list_expired()
    return CleanupPreviewResponse(
        expired_count=len(expired),
        workspaces=[
            ExpiredWorkspaceResponse(
                id=ws.id,
                slug=ws.slug,
                title=ws.title,
                expires_at=ws.expires_at,
                has_drive_folder=ws.drive_folder_id is not None,
            )
            for ws in expired
        ],
    )
