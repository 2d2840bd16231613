"""WorkspaceFile model for files belonging to a workspace."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sendany.db.base import Base
from sendany.db.models.enums import FileType

if TYPE_CHECKING:
    from sendany.db.models.workspace import Workspace


class WorkspaceFile(Base):
    """A file in a workspace.

    Holds either inline ``content`` (text, code, markdown) or an uploaded
    binary referenced by ``drive_file_id`` with its size and mime type.
    """

    __tablename__ = "workspace_files"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    workspace_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )

    filename: Mapped[str] = mapped_column(String(512), nullable=False, default="untitled")
    file_type: Mapped[FileType] = mapped_column(Enum(FileType), default=FileType.TEXT)
    language: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Inline content
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Uploaded binary
    drive_file_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)

    order_index: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    workspace: Mapped[Workspace] = relationship("Workspace", back_populates="files")

    __table_args__ = (
        Index("ix_workspace_files_workspace_id", "workspace_id"),
    )
