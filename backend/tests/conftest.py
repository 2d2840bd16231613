"""Pytest configuration and fixtures."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Create a temporary directory for test paths
_test_tmp_dir = tempfile.mkdtemp(prefix="sendany_test_")

# Set config BEFORE importing app modules
os.environ["SENDANY_CONFIG_PATH"] = _test_tmp_dir
os.environ["SENDANY_ENCRYPTION_KEY"] = "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA="
os.environ["SENDANY_REAPER_ENABLED"] = "false"
os.environ["SENDANY_CLEANUP_API_KEY"] = "test-cleanup-key"
os.environ["SENDANY_GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["SENDANY_GOOGLE_CLIENT_SECRET"] = "test-client-secret"

from sendany.db import get_db
from sendany.db.base import Base
from sendany.db.models import Workspace, WorkspaceFile
from sendany.db.models.enums import FileType
from sendany.main import app
from sendany.services.token_store import CredentialRecord, TokenStore

USER_ID = "user-1"


@pytest.fixture
async def db_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session


@pytest.fixture
async def client(db_engine):
    """Async HTTP client for the app, backed by the test database."""
    test_session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_workspace(db_session):
    """Factory creating a committed workspace."""

    async def _make(
        user_id: str | None = USER_ID,
        title: str = "Project Files",
        drive_folder_id: str | None = None,
        expires_at: datetime | None = None,
        slug: str | None = None,
    ) -> Workspace:
        workspace = Workspace(
            slug=slug or f"ws-{os.urandom(4).hex()}",
            title=title,
            user_id=user_id,
            drive_folder_id=drive_folder_id,
            expires_at=expires_at,
        )
        db_session.add(workspace)
        await db_session.commit()
        return workspace

    return _make


@pytest.fixture
def make_file(db_session):
    """Factory creating a committed uploaded-file row."""

    async def _make(
        workspace: Workspace,
        file_size: int | None = None,
        drive_file_id: str | None = None,
        filename: str = "file.bin",
    ) -> WorkspaceFile:
        row = WorkspaceFile(
            workspace_id=workspace.id,
            filename=filename,
            file_type=FileType.FILE,
            file_size=file_size,
            drive_file_id=drive_file_id,
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _make


@pytest.fixture
def make_credentials(db_session):
    """Factory storing linked Drive credentials for a user."""

    async def _make(
        user_id: str = USER_ID,
        access_token: str = "access-token",
        refresh_token: str = "refresh-token",
        expires_at: datetime | None = None,
        total_storage_used: int = 0,
        drive_email: str | None = "user@example.com",
    ) -> CredentialRecord:
        record = CredentialRecord(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(hours=1),
            scope="https://www.googleapis.com/auth/drive.file",
            drive_email=drive_email,
            total_storage_used=total_storage_used,
        )
        await TokenStore(db_session).upsert(record, include_usage=True)
        await db_session.commit()
        return record

    return _make


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp directories after test session."""
    import shutil
    if Path(_test_tmp_dir).exists():
        shutil.rmtree(_test_tmp_dir, ignore_errors=True)
