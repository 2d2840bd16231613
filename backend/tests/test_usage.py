"""Tests for cached usage reconciliation."""

from __future__ import annotations

from sendany.services.token_store import TokenStore
from sendany.services.usage import reconcile_usage


class TestReconcileUsage:
    """Tests for reconcile_usage()."""

    async def test_corrects_drifted_counters(self, db_session, make_workspace, make_file, make_credentials):
        await make_credentials("user-1", total_storage_used=999)
        await make_credentials("user-2", total_storage_used=30)
        first = await make_workspace(user_id="user-1")
        second = await make_workspace(user_id="user-2")
        await make_file(first, file_size=100)
        await make_file(first, file_size=None)
        await make_file(second, file_size=30)

        corrected = await reconcile_usage(db_session)

        assert corrected == 1
        store = TokenStore(db_session)
        assert (await store.get("user-1")).total_storage_used == 100
        assert (await store.get("user-2")).total_storage_used == 30

    async def test_user_without_files_resets_to_zero(self, db_session, make_credentials):
        await make_credentials(total_storage_used=500)

        assert await reconcile_usage(db_session) == 1
        assert (await TokenStore(db_session).get("user-1")).total_storage_used == 0

    async def test_no_credentials(self, db_session):
        assert await reconcile_usage(db_session) == 0
