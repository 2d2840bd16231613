"""Keeping stored access tokens usable."""

from __future__ import annotations

from datetime import datetime

from sendany.core.logging import get_logger
from sendany.drive.oauth import CredentialRefresher
from sendany.services.token_store import CredentialRecord, TokenStore

logger = get_logger(__name__)


async def ensure_fresh(
    store: TokenStore,
    refresher: CredentialRefresher,
    record: CredentialRecord,
    now: datetime | None = None,
    force: bool = False,
) -> CredentialRecord:
    """Return a record whose access token can be used right now.

    A stale (or, with ``force``, any) record is refreshed, written through
    the store and committed before it is returned, so the new token is never
    used without being persisted first.

    Raises:
        ReconnectRequiredError: If Google rejects the refresh token.
        RemoteUnavailableError: If the token endpoint cannot be reached.
    """
    if not force and not refresher.is_stale(record, now):
        return record

    refreshed = await refresher.refresh(record.refresh_token)
    updated = record.with_refresh(refreshed)
    await store.upsert(updated)
    await store.db.commit()

    logger.info(
        "access_token_refreshed",
        user_id=record.user_id,
        forced=force,
        expires_at=updated.expires_at.isoformat(),
    )
    return updated
