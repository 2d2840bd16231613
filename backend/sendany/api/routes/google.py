"""Google OAuth endpoints for linking a user's Google Drive."""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.api.deps import CurrentUser, error_response, get_oauth, require_user
from sendany.core.logging import get_logger
from sendany.db import get_db
from sendany.drive.exceptions import OAuthExchangeError, OAuthNotConfiguredError
from sendany.drive.oauth import GoogleOAuth
from sendany.services.token_store import CredentialRecord, TokenStore

logger = get_logger(__name__)

router = APIRouter(prefix="/google", tags=["google"])


# =============================================================================
# Schemas
# =============================================================================


class GoogleOAuthInitResponse(BaseModel):
    """OAuth authorization URL response."""

    auth_url: str
    state: str


class GoogleOAuthCallbackParams(BaseModel):
    """OAuth callback parameters."""

    code: str
    state: str | None = None


class GoogleOAuthCallbackResponse(BaseModel):
    """OAuth callback result."""

    success: bool
    email: str | None = None


# =============================================================================
# OAuth Flow Endpoints
# =============================================================================


@router.post("/oauth/authorize", response_model=GoogleOAuthInitResponse)
async def initiate_oauth(
    user: CurrentUser = Depends(require_user),
    oauth: GoogleOAuth = Depends(get_oauth),
) -> GoogleOAuthInitResponse:
    """Start the OAuth authorization flow.

    Returns a URL to redirect the user to for Google authentication.
    """
    # Generate state token for CSRF protection
    state = secrets.token_urlsafe(32)

    try:
        auth_url = oauth.get_authorization_url(state=state)
    except OAuthNotConfiguredError as e:
        raise error_response(400, e.code, e.message)

    logger.info("oauth_initiated", user_id=user.id, state=state[:8])
    return GoogleOAuthInitResponse(auth_url=auth_url, state=state)


@router.post("/oauth/callback", response_model=GoogleOAuthCallbackResponse)
async def oauth_callback(
    params: GoogleOAuthCallbackParams,
    user: CurrentUser = Depends(require_user),
    db: AsyncSession = Depends(get_db),
    oauth: GoogleOAuth = Depends(get_oauth),
) -> GoogleOAuthCallbackResponse:
    """Handle the OAuth callback and store the caller's Drive credentials."""
    try:
        tokens = await oauth.exchange_code(params.code)
    except OAuthNotConfiguredError as e:
        raise error_response(400, e.code, e.message)
    except OAuthExchangeError as e:
        logger.warning("oauth_callback_failed", user_id=user.id, error=e.message)
        raise error_response(400, e.code, e.message)

    await TokenStore(db).upsert(
        CredentialRecord(
            user_id=user.id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            scope=tokens.scope,
            drive_email=tokens.email,
        )
    )

    logger.info("oauth_completed", user_id=user.id, email=tokens.email)
    return GoogleOAuthCallbackResponse(success=True, email=tokens.email)
