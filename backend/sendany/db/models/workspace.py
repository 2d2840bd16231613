"""Workspace model - a user-owned container of shared files."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sendany.db.base import Base

if TYPE_CHECKING:
    from sendany.db.models.workspace_file import WorkspaceFile
    from sendany.db.models.workspace_view import WorkspaceView


class Workspace(Base):
    """A workspace with shared visibility and expiration settings.

    ``drive_folder_id`` is assigned on the first upload and never changes
    afterwards; every later upload reuses the folder.
    """

    __tablename__ = "workspaces"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="Untitled")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Owner (anonymous workspaces have none and cannot hold uploads)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Google Drive folder holding uploaded files
    drive_folder_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    files: Mapped[list[WorkspaceFile]] = relationship(
        "WorkspaceFile",
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    views: Mapped[list[WorkspaceView]] = relationship(
        "WorkspaceView",
        back_populates="workspace",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_workspaces_user_id", "user_id"),
        Index("ix_workspaces_expires_at", "expires_at"),
    )
