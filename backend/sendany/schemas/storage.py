"""Storage broker request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Error payload returned in ``detail`` by storage endpoints."""

    reason: str
    message: str


# ==================== Upload ====================


class UploadedDriveFile(BaseModel):
    """The Drive object created by an upload."""

    id: str
    name: str
    size: int
    mime_type: str
    public_url: str
    shared: bool


class StorageUsage(BaseModel):
    """A user's storage usage against the per-user ceiling."""

    used: int
    limit: int


class UploadResponse(BaseModel):
    """Response for a successful upload."""

    success: bool = True
    file_id: str
    workspace_id: str
    drive_file: UploadedDriveFile
    storage: StorageUsage


# ==================== Drive status ====================


class QuotaLimitsResponse(BaseModel):
    """Configured storage ceilings in bytes."""

    max_file_size: int
    max_workspace_size: int
    max_user_storage: int


class DriveStatusResponse(BaseModel):
    """Connection and usage status for the current user."""

    available: bool
    connected: bool
    drive_email: str | None = None
    reason: str | None = None
    used: int = 0
    limit: int = 0
    percentage: float = 0.0
    limits: QuotaLimitsResponse


class WorkspaceUsageResponse(BaseModel):
    """Stored and remote size of one workspace."""

    workspace_id: str
    drive_folder_id: str | None = None
    used: int
    limit: int
    remote_size: int | None = None


# ==================== Cleanup ====================


class CleanupResponse(BaseModel):
    """Result of a reaper pass."""

    cleaned_count: int
    total_expired: int
    errors: list[str] = Field(default_factory=list)


class ExpiredWorkspaceResponse(BaseModel):
    """A workspace the next reaper pass would delete."""

    id: str
    slug: str
    title: str
    expires_at: datetime
    has_drive_folder: bool


class CleanupPreviewResponse(BaseModel):
    """Read-only preview of the next reaper pass."""

    expired_count: int
    workspaces: list[ExpiredWorkspaceResponse]
