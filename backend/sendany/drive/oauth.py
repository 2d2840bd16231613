"""Google OAuth2 flow and access-token refresh.

Provides:
- Authorization URL generation (offline access, forced consent)
- Authorization code exchange, including the linked account email
- Staleness checks and refresh-token exchange
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from pydantic import BaseModel

from sendany.core.config import settings
from sendany.core.logging import get_logger
from sendany.drive.exceptions import (
    OAuthExchangeError,
    OAuthNotConfiguredError,
    ReconnectRequiredError,
    RemoteUnavailableError,
)
from sendany.utils.timestamps import as_utc, utcnow

if TYPE_CHECKING:
    from sendany.services.token_store import CredentialRecord

logger = get_logger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

# drive.file only reaches files and folders this app created
SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",  # Google auto-adds this with userinfo.email
]

# Used when Google omits the expiry from a token response
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


class TokenRefresh(BaseModel):
    """Fields replaced by a refresh; the refresh token itself is kept."""

    access_token: str
    expires_at: datetime
    scope: str | None = None


class OAuthTokens(BaseModel):
    """Result of a successful authorization code exchange."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    scope: str
    email: str | None = None


def _expiry_or_default(expiry: datetime | None) -> datetime:
    # google-auth reports expiry as naive UTC
    if expiry is None:
        return utcnow() + DEFAULT_TOKEN_LIFETIME
    return as_utc(expiry)


def is_stale(expires_at: datetime, now: datetime | None = None) -> bool:
    """Whether an access token expiring at ``expires_at`` is unusable at ``now``."""
    now = now or utcnow()
    return as_utc(now) >= as_utc(expires_at)


class CredentialRefresher:
    """Exchanges refresh tokens for new access tokens."""

    def __init__(self, client_id: str | None = None, client_secret: str | None = None):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = client_secret if client_secret is not None else settings.google_client_secret

    @staticmethod
    def is_stale(record: CredentialRecord, now: datetime | None = None) -> bool:
        """Whether the record's access token is invalid at ``now`` (no grace period)."""
        return is_stale(record.expires_at, now)

    async def refresh(self, refresh_token: str) -> TokenRefresh:
        """Obtain a new access token.

        Args:
            refresh_token: The stored refresh token.

        Returns:
            TokenRefresh with the new access token, expiry and scope.

        Raises:
            ReconnectRequiredError: If Google rejects the refresh token.
            RemoteUnavailableError: If Google cannot be reached.
        """
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )

        try:
            await asyncio.to_thread(creds.refresh, Request())
        except RefreshError as e:
            logger.warning("token_refresh_rejected", error=str(e))
            raise ReconnectRequiredError() from e
        except TransportError as e:
            logger.warning("token_refresh_unavailable", error=str(e))
            raise RemoteUnavailableError(f"Token refresh failed: {e}", retryable=True) from e

        if not creds.token:
            raise ReconnectRequiredError("Google returned no access token")

        granted = getattr(creds, "granted_scopes", None)
        return TokenRefresh(
            access_token=creds.token,
            expires_at=_expiry_or_default(creds.expiry),
            scope=" ".join(granted) if granted else None,
        )


class GoogleOAuth:
    """Authorization-code flow for linking a user's Google Drive."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
    ):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = client_secret if client_secret is not None else settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _flow(self) -> Flow:
        if not self.configured:
            raise OAuthNotConfiguredError()

        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                }
            },
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
        )

    def get_authorization_url(self, state: str | None = None) -> str:
        """Get the OAuth2 authorization URL.

        Args:
            state: Optional state parameter for CSRF protection.

        Returns:
            OAuth2 authorization URL.

        Raises:
            OAuthNotConfiguredError: If OAuth is not configured.
        """
        auth_url, _ = self._flow().authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",  # Forces Google to issue a refresh token
            state=state,
        )
        return auth_url

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the OAuth callback.

        Returns:
            OAuthTokens including the linked account email.

        Raises:
            OAuthNotConfiguredError: If OAuth is not configured.
            OAuthExchangeError: If the exchange fails or yields no refresh token.
        """
        flow = self._flow()

        def _exchange() -> OAuthTokens:
            flow.fetch_token(code=code)
            creds = flow.credentials
            if not creds.token or not creds.refresh_token:
                raise OAuthExchangeError("Google did not return the required tokens")

            oauth2 = build("oauth2", "v2", credentials=creds, cache_discovery=False)
            user_info = oauth2.userinfo().get().execute()

            return OAuthTokens(
                access_token=creds.token,
                refresh_token=creds.refresh_token,
                expires_at=_expiry_or_default(creds.expiry),
                scope=" ".join(creds.scopes or SCOPES),
                email=user_info.get("email"),
            )

        try:
            return await asyncio.to_thread(_exchange)
        except OAuthExchangeError:
            raise
        except Exception as e:
            raise OAuthExchangeError(f"OAuth callback failed: {e}") from e
