"""DriveCredentials model for per-user Google Drive OAuth tokens."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sendany.db.base import Base


class DriveCredentials(Base):
    """Stores the linked Google Drive account of one user.

    Tokens are stored encrypted; only the token store decrypts them.
    ``total_storage_used`` caches the sum of the user's uploaded file sizes.
    """

    __tablename__ = "drive_credentials"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Owning identity (at most one linked account per user)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Encrypted tokens
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    # Access token is invalid at/after this instant
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Space-delimited granted scopes
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Linked Google account, display only
    drive_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Cached usage in bytes
    total_storage_used: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )
