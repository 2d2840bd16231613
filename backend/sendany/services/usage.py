"""Reconciliation of the cached per-user storage counter."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.logging import get_logger
from sendany.services.token_store import TokenStore
from sendany.services.workspaces import WorkspaceStore

logger = get_logger(__name__)


async def reconcile_usage(db: AsyncSession) -> int:
    """Reset every cached usage counter that drifted from its file rows.

    Counters drift when uploads are abandoned between the remote write and the
    metadata commit, or when the reaper deletes a workspace's files.

    Returns:
        Number of corrected credential records.
    """
    tokens = TokenStore(db)
    workspaces = WorkspaceStore(db)

    corrected = 0
    for user_id in await tokens.list_user_ids():
        record = await tokens.get(user_id)
        if record is None:
            continue

        derived = await workspaces.sum_file_sizes_for_user(user_id)
        if record.total_storage_used != derived:
            logger.info(
                "usage_drift_corrected",
                user_id=user_id,
                cached=record.total_storage_used,
                derived=derived,
            )
            await tokens.set_usage(user_id, derived)
            corrected += 1

    await db.commit()
    return corrected
