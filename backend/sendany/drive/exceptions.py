"""Custom exceptions for the Google Drive integration."""

from __future__ import annotations


class DriveError(Exception):
    """Base exception for Google Drive related errors."""

    def __init__(self, message: str, code: str = "DRIVE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class RemoteUnavailableError(DriveError):
    """Raised when a Drive API call fails.

    ``retryable`` is True for transport errors, rate limiting and 5xx
    responses; the broker never retries on its own, the caller decides.
    """

    def __init__(
        self,
        message: str = "Google Drive is unavailable",
        retryable: bool = True,
        status: int | None = None,
        code: str = "remote_unavailable",
    ):
        self.retryable = retryable
        self.status = status
        super().__init__(message, code)


class AccessTokenRejectedError(RemoteUnavailableError):
    """Raised when Google rejects the access token (HTTP 401)."""

    def __init__(self, message: str = "Google rejected the access token"):
        super().__init__(message, retryable=False, status=401, code="access_token_rejected")


class ReconnectRequiredError(DriveError):
    """Raised when the refresh token is rejected; the user must re-authorize."""

    def __init__(self, message: str = "Google Drive access was revoked. Please reconnect your Google Drive."):
        super().__init__(message, "reconnect_required")


class OAuthNotConfiguredError(DriveError):
    """Raised when the Google OAuth client is not configured."""

    def __init__(
        self,
        message: str = "Google OAuth not configured. Set SENDANY_GOOGLE_CLIENT_ID and SENDANY_GOOGLE_CLIENT_SECRET",
    ):
        super().__init__(message, "oauth_not_configured")


class OAuthExchangeError(DriveError):
    """Raised when exchanging an authorization code fails."""

    def __init__(self, message: str):
        super().__init__(message, "oauth_exchange_failed")
