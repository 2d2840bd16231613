"""Workspace metadata store.

Reads and writes workspaces and their files for the storage broker. Usage
figures are always derived from file rows here; the cached per-user counter
lives with the credentials.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.logging import get_logger
from sendany.db.models import FileType, Workspace, WorkspaceFile, WorkspaceView
from sendany.utils.timestamps import as_utc

logger = get_logger(__name__)


class WorkspaceStore:
    """Workspace and file persistence used by uploads and the reaper."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_workspace(self, workspace_id: str) -> Workspace | None:
        result = await self.db.execute(
            select(Workspace)
            .where(Workspace.id == workspace_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_file(self, file_id: str) -> WorkspaceFile | None:
        result = await self.db.execute(
            select(WorkspaceFile)
            .where(WorkspaceFile.id == file_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_remote_folder(self, workspace_id: str, folder_id: str) -> str | None:
        """Assign the remote folder of a workspace if it has none yet.

        The write only applies while ``drive_folder_id`` is NULL, so a folder
        assigned concurrently is never overwritten.

        Returns:
            The folder id now stored on the workspace, which may differ from
            ``folder_id`` when another request won the race.
        """
        result = await self.db.execute(
            update(Workspace)
            .where(Workspace.id == workspace_id)
            .where(Workspace.drive_folder_id.is_(None))
            .values(drive_folder_id=folder_id)
        )

        stored = await self.db.execute(
            select(Workspace.drive_folder_id).where(Workspace.id == workspace_id)
        )
        stored_id = stored.scalar_one_or_none()

        if result.rowcount == 0 and stored_id != folder_id:
            logger.warning(
                "workspace_folder_already_assigned",
                workspace_id=workspace_id,
                stored_folder_id=stored_id,
                discarded_folder_id=folder_id,
            )
        return stored_id

    async def get_expired_workspaces(self, now: datetime) -> list[Workspace]:
        """Workspaces whose expiry is strictly before ``now``, oldest first."""
        # Expiry is stored as naive UTC
        cutoff = as_utc(now).replace(tzinfo=None)
        result = await self.db.execute(
            select(Workspace)
            .where(Workspace.expires_at.is_not(None))
            .where(Workspace.expires_at < cutoff)
            .order_by(Workspace.expires_at)
        )
        return list(result.scalars().all())

    async def delete_workspace_cascade(self, workspace_id: str) -> None:
        """Delete a workspace together with its files and view records."""
        await self.db.execute(delete(WorkspaceFile).where(WorkspaceFile.workspace_id == workspace_id))
        await self.db.execute(delete(WorkspaceView).where(WorkspaceView.workspace_id == workspace_id))
        await self.db.execute(delete(Workspace).where(Workspace.id == workspace_id))
        await self.db.flush()

    async def sum_file_sizes(self, workspace_id: str) -> int:
        """Total bytes of uploaded files in one workspace."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(WorkspaceFile.file_size), 0)).where(
                WorkspaceFile.workspace_id == workspace_id
            )
        )
        return int(result.scalar_one())

    async def sum_file_sizes_for_user(self, user_id: str) -> int:
        """Total bytes of uploaded files across all workspaces of a user."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(WorkspaceFile.file_size), 0))
            .join(Workspace, WorkspaceFile.workspace_id == Workspace.id)
            .where(Workspace.user_id == user_id)
        )
        return int(result.scalar_one())

    async def record_upload(
        self,
        workspace_id: str,
        drive_file_id: str,
        file_size: int,
        mime_type: str,
        filename: str,
        file_id: str | None = None,
    ) -> WorkspaceFile:
        """Point a file row at an uploaded remote object.

        Args:
            workspace_id: Workspace the file belongs to.
            drive_file_id: Id of the uploaded remote file.
            file_size: Size in bytes.
            mime_type: Content type.
            filename: Name used when a new row is created.
            file_id: Placeholder row to update. A new ``file`` row is
                created when omitted.

        Returns:
            The updated or created row.
        """
        if file_id is not None:
            row = await self.get_file(file_id)
            if row is None or row.workspace_id != workspace_id:
                raise LookupError(f"File {file_id} not found in workspace {workspace_id}")
        else:
            order = await self.db.execute(
                select(func.coalesce(func.max(WorkspaceFile.order_index), -1)).where(
                    WorkspaceFile.workspace_id == workspace_id
                )
            )
            row = WorkspaceFile(
                workspace_id=workspace_id,
                filename=filename,
                file_type=FileType.FILE,
                order_index=int(order.scalar_one()) + 1,
            )
            self.db.add(row)

        row.drive_file_id = drive_file_id
        row.file_size = file_size
        row.mime_type = mime_type
        await self.db.flush()
        return row
