"""Shared FastAPI dependencies for the storage API."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel

from sendany.core.config import settings
from sendany.drive.client import GoogleDriveClient
from sendany.drive.client import get_drive_client as _shared_drive_client
from sendany.drive.oauth import CredentialRefresher, GoogleOAuth
from sendany.services.quota import QuotaLimits


class CurrentUser(BaseModel):
    """The caller as resolved by the upstream session layer."""

    id: str


def error_response(status_code: int, reason: str, message: str) -> HTTPException:
    """Build an HTTPException with the ``{reason, message}`` detail shape."""
    return HTTPException(status_code=status_code, detail={"reason": reason, "message": message})


async def get_current_user(request: Request) -> CurrentUser | None:
    """Resolve the caller from the trusted user id header."""
    user_id = request.headers.get(settings.user_id_header, "").strip()
    if not user_id:
        return None
    return CurrentUser(id=user_id)


async def require_user(user: CurrentUser | None = Depends(get_current_user)) -> CurrentUser:
    """Like ``get_current_user`` but rejects anonymous callers."""
    if user is None:
        raise error_response(401, "unauthenticated", "Authentication required")
    return user


def get_drive_client() -> GoogleDriveClient:
    return _shared_drive_client()


def get_credential_refresher() -> CredentialRefresher:
    return CredentialRefresher()


def get_oauth() -> GoogleOAuth:
    return GoogleOAuth()


def get_quota_limits() -> QuotaLimits:
    return QuotaLimits.from_settings()
