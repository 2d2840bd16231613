"""Database models for SendAny."""

from sendany.db.models.drive_credentials import DriveCredentials
from sendany.db.models.enums import FileType
from sendany.db.models.workspace import Workspace
from sendany.db.models.workspace_file import WorkspaceFile
from sendany.db.models.workspace_view import WorkspaceView

__all__ = [
    # Models
    "DriveCredentials",
    "Workspace",
    "WorkspaceFile",
    "WorkspaceView",
    # Enums
    "FileType",
]
