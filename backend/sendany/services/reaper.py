"""Expiry reaper for workspaces past their expiration time.

Each pass deletes the Drive folder of every expired workspace (best effort)
and then always removes the workspace's local metadata. A workspace whose
remote cleanup failed is still deleted locally; its folder id is kept in the
error entry and the log, since no later pass can find it again.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.config import settings
from sendany.core.logging import get_logger
from sendany.core.security import TokenDecryptionError
from sendany.db.session import async_session_maker
from sendany.drive.client import GoogleDriveClient, get_drive_client
from sendany.drive.exceptions import DriveError
from sendany.drive.oauth import CredentialRefresher
from sendany.services.credentials import ensure_fresh
from sendany.services.token_store import TokenStore
from sendany.services.usage import reconcile_usage
from sendany.services.workspaces import WorkspaceStore
from sendany.utils.timestamps import as_utc, utcnow

logger = get_logger(__name__)


class ReapResult(BaseModel):
    """Summary of one reaper pass."""

    cleaned_count: int = 0
    total_expired: int = 0
    errors: list[str] = Field(default_factory=list)


class ExpiredWorkspace(BaseModel):
    """Preview entry for a workspace the next pass would delete."""

    id: str
    slug: str
    title: str
    user_id: str | None
    expires_at: datetime
    drive_folder_id: str | None


class ExpiryReaper:
    """Deletes expired workspaces and their Drive folders."""

    def __init__(
        self,
        db: AsyncSession,
        drive: GoogleDriveClient | None = None,
        refresher: CredentialRefresher | None = None,
    ):
        self.db = db
        self.drive = drive or get_drive_client()
        self.refresher = refresher or CredentialRefresher()
        self.tokens = TokenStore(db)
        self.workspaces = WorkspaceStore(db)

    async def list_expired(self, now: datetime | None = None) -> list[ExpiredWorkspace]:
        """Workspaces a pass at ``now`` would delete, oldest first."""
        now = now or utcnow()
        return [
            ExpiredWorkspace(
                id=ws.id,
                slug=ws.slug,
                title=ws.title,
                user_id=ws.user_id,
                expires_at=as_utc(ws.expires_at),
                drive_folder_id=ws.drive_folder_id,
            )
            for ws in await self.workspaces.get_expired_workspaces(now)
        ]

    async def run_once(self, now: datetime | None = None) -> ReapResult:
        """Run a single reaper pass.

        Args:
            now: Pass timestamp, captured once for the whole pass.

        Returns:
            ReapResult with counts and per-workspace error messages.
        """
        now = now or utcnow()
        expired = await self.list_expired(now)
        result = ReapResult(total_expired=len(expired))

        logger.info("reaper_pass_starting", total_expired=len(expired))

        for ws in expired:
            if ws.user_id and ws.drive_folder_id:
                try:
                    error = await self._delete_remote_folder(ws, now)
                except Exception as e:
                    await self.db.rollback()
                    logger.exception(
                        "reaper_remote_cleanup_failed",
                        workspace_id=ws.id,
                        folder_id=ws.drive_folder_id,
                        error=str(e),
                    )
                    error = f"Remote cleanup failed for workspace {ws.id} (folder {ws.drive_folder_id}): {e}"
                if error:
                    result.errors.append(error)

            try:
                await self.workspaces.delete_workspace_cascade(ws.id)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                logger.error("reaper_workspace_delete_failed", workspace_id=ws.id, error=str(e))
                result.errors.append(f"Failed to delete workspace {ws.id}: {e}")
                continue

            result.cleaned_count += 1
            logger.info("reaper_workspace_deleted", workspace_id=ws.id, slug=ws.slug)

        logger.info(
            "reaper_pass_complete",
            cleaned_count=result.cleaned_count,
            total_expired=result.total_expired,
            errors=len(result.errors),
        )
        return result

    async def _delete_remote_folder(self, ws: ExpiredWorkspace, now: datetime) -> str | None:
        """Delete a workspace's Drive folder. Returns an error message on failure."""
        try:
            record = await self.tokens.get(ws.user_id)
        except TokenDecryptionError as e:
            logger.error("reaper_credentials_unreadable", workspace_id=ws.id, user_id=ws.user_id, error=str(e))
            return f"Unreadable credentials for workspace {ws.id} (folder {ws.drive_folder_id})"
        if record is None:
            logger.info("reaper_no_credentials", workspace_id=ws.id, user_id=ws.user_id)
            return None

        try:
            record = await ensure_fresh(self.tokens, self.refresher, record, now)
        except DriveError as e:
            logger.warning(
                "reaper_token_refresh_failed",
                workspace_id=ws.id,
                user_id=ws.user_id,
                folder_id=ws.drive_folder_id,
                error=e.message,
            )
            return f"Failed to refresh token for workspace {ws.id} (folder {ws.drive_folder_id}): {e.message}"

        try:
            await self.drive.delete_folder(record.access, ws.drive_folder_id)
        except DriveError as e:
            logger.warning(
                "reaper_folder_delete_failed",
                workspace_id=ws.id,
                folder_id=ws.drive_folder_id,
                error=e.message,
            )
            return f"Failed to delete Drive folder {ws.drive_folder_id} for workspace {ws.id}: {e.message}"

        return None


class ReaperService:
    """Runs the expiry reaper and usage reconciliation periodically."""

    def __init__(
        self,
        interval_minutes: int | None = None,
        initial_delay_seconds: int | None = None,
    ):
        self.interval_minutes = interval_minutes or settings.reaper_interval_minutes
        self.initial_delay_seconds = (
            initial_delay_seconds if initial_delay_seconds is not None else settings.reaper_initial_delay_seconds
        )
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the reaper service."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("reaper_service_started", interval_minutes=self.interval_minutes)

    async def stop(self) -> None:
        """Stop the reaper service."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("reaper_service_stopped")

    async def _run_loop(self) -> None:
        """Main reaper loop."""
        await asyncio.sleep(self.initial_delay_seconds)

        while self._running:
            await self.run_pass()
            await asyncio.sleep(self.interval_minutes * 60)

    async def run_pass(self) -> dict:
        """Run one reaper pass followed by usage reconciliation.

        Each step opens its own session and logs its own failure, so one
        failing step never stops the other or the loop.

        Returns:
            Dictionary with the pass results.
        """
        results: dict = {"reaped": None, "usage_corrected": None}

        try:
            async with async_session_maker() as db:
                reaped = await ExpiryReaper(db).run_once()
                results["reaped"] = reaped.model_dump()
        except Exception as e:
            logger.error("reaper_pass_error", error=str(e))

        try:
            async with async_session_maker() as db:
                results["usage_corrected"] = await reconcile_usage(db)
        except Exception as e:
            logger.error("usage_reconcile_error", error=str(e))

        return results


_reaper_service: ReaperService | None = None


def get_reaper_service() -> ReaperService:
    """Get or create the global reaper service."""
    global _reaper_service
    if _reaper_service is None:
        _reaper_service = ReaperService()
    return _reaper_service
