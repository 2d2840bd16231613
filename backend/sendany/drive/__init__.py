"""Google Drive integration: OAuth, token refresh and the Drive v3 client."""

from sendany.drive.client import (
    DriveAccess,
    DriveFile,
    GoogleDriveClient,
    get_drive_client,
    public_url,
)
from sendany.drive.exceptions import (
    AccessTokenRejectedError,
    DriveError,
    OAuthExchangeError,
    OAuthNotConfiguredError,
    ReconnectRequiredError,
    RemoteUnavailableError,
)
from sendany.drive.oauth import (
    SCOPES,
    CredentialRefresher,
    GoogleOAuth,
    OAuthTokens,
    TokenRefresh,
    is_stale,
)

__all__ = [
    # Client
    "DriveAccess",
    "DriveFile",
    "GoogleDriveClient",
    "get_drive_client",
    "public_url",
    # OAuth
    "SCOPES",
    "CredentialRefresher",
    "GoogleOAuth",
    "OAuthTokens",
    "TokenRefresh",
    "is_stale",
    # Exceptions
    "DriveError",
    "RemoteUnavailableError",
    "AccessTokenRejectedError",
    "ReconnectRequiredError",
    "OAuthNotConfiguredError",
    "OAuthExchangeError",
]
