"""Persistence of per-user Google Drive credentials.

The store is the only place that sees encrypted tokens; everything else
works with ``CredentialRecord`` values holding plaintext tokens.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.logging import get_logger
from sendany.core.security import TokenCipher, get_token_cipher
from sendany.db.models import DriveCredentials
from sendany.drive.client import DriveAccess
from sendany.drive.oauth import TokenRefresh
from sendany.utils.timestamps import as_utc

logger = get_logger(__name__)


class NotConnectedError(Exception):
    """Raised when a user has no linked Google Drive account."""

    def __init__(self, message: str = "Google Drive not connected. Please connect your Google Drive first."):
        self.message = message
        self.code = "not_connected"
        super().__init__(message)


class CredentialRecord(BaseModel):
    """A user's OAuth credentials with plaintext tokens."""

    user_id: str
    access_token: str = Field(repr=False)
    refresh_token: str = Field(repr=False)
    expires_at: datetime
    scope: str = ""
    drive_email: str | None = None
    total_storage_used: int = 0

    @property
    def access(self) -> DriveAccess:
        """Credential pair for Drive calls."""
        return DriveAccess(access_token=self.access_token, refresh_token=self.refresh_token)

    def with_refresh(self, refreshed: TokenRefresh) -> CredentialRecord:
        """Apply a refresh result, keeping the original refresh token."""
        return self.model_copy(
            update={
                "access_token": refreshed.access_token,
                "expires_at": as_utc(refreshed.expires_at),
                "scope": refreshed.scope or self.scope,
            }
        )


class TokenStore:
    """Reads and writes ``DriveCredentials`` rows keyed by user id."""

    def __init__(self, db: AsyncSession, cipher: TokenCipher | None = None):
        """Initialize the token store.

        Args:
            db: AsyncSession for database operations.
            cipher: Token cipher, defaults to the process-wide one.
        """
        self.db = db
        self._cipher = cipher or get_token_cipher()

    async def _get_row(self, user_id: str) -> DriveCredentials | None:
        result = await self.db.execute(
            select(DriveCredentials)
            .where(DriveCredentials.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    def _to_record(self, row: DriveCredentials) -> CredentialRecord:
        return CredentialRecord(
            user_id=row.user_id,
            access_token=self._cipher.decrypt(row.access_token_encrypted),
            refresh_token=self._cipher.decrypt(row.refresh_token_encrypted),
            expires_at=as_utc(row.expires_at),
            scope=row.scope or "",
            drive_email=row.drive_email,
            total_storage_used=row.total_storage_used or 0,
        )

    async def get(self, user_id: str) -> CredentialRecord | None:
        """Get a user's credentials, or None when no account is linked."""
        row = await self._get_row(user_id)
        if row is None:
            return None
        return self._to_record(row)

    async def require(self, user_id: str) -> CredentialRecord:
        """Get a user's credentials.

        Raises:
            NotConnectedError: If the user has not linked Google Drive.
        """
        record = await self.get(user_id)
        if record is None:
            raise NotConnectedError()
        return record

    async def upsert(self, record: CredentialRecord, include_usage: bool = False) -> None:
        """Create or replace a user's credentials.

        Access token, refresh token, expiry, scope and email are replaced.
        The cached usage counter is only written when ``include_usage`` is set.
        """
        row = await self._get_row(record.user_id)
        if row is None:
            row = DriveCredentials(
                user_id=record.user_id,
                total_storage_used=record.total_storage_used if include_usage else 0,
            )
            self.db.add(row)
            created = True
        else:
            created = False
            if include_usage:
                row.total_storage_used = record.total_storage_used

        row.access_token_encrypted = self._cipher.encrypt(record.access_token)
        row.refresh_token_encrypted = self._cipher.encrypt(record.refresh_token)
        row.expires_at = as_utc(record.expires_at)
        row.scope = record.scope
        row.drive_email = record.drive_email
        await self.db.flush()

        logger.info(
            "credentials_created" if created else "credentials_updated",
            user_id=record.user_id,
            expires_at=row.expires_at.isoformat(),
        )

    async def set_usage(self, user_id: str, used_bytes: int) -> None:
        """Overwrite the cached usage counter."""
        await self.db.execute(
            update(DriveCredentials)
            .where(DriveCredentials.user_id == user_id)
            .values(total_storage_used=used_bytes)
        )
        await self.db.flush()

    async def increment_usage(self, user_id: str, delta: int) -> int | None:
        """Atomically add ``delta`` bytes to the cached usage counter.

        The addition happens inside a single UPDATE so concurrent uploads never
        lose an increment.

        Returns:
            The new counter value, or None if the user has no credentials.
        """
        result = await self.db.execute(
            update(DriveCredentials)
            .where(DriveCredentials.user_id == user_id)
            .values(total_storage_used=DriveCredentials.total_storage_used + delta)
        )
        if result.rowcount == 0:
            return None

        value = await self.db.execute(
            select(DriveCredentials.total_storage_used).where(DriveCredentials.user_id == user_id)
        )
        return value.scalar_one()

    async def list_user_ids(self) -> list[str]:
        """User ids of every linked account."""
        result = await self.db.execute(
            select(DriveCredentials.user_id).order_by(DriveCredentials.user_id)
        )
        return list(result.scalars().all())
