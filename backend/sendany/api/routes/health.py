"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sendany.core.config import settings
from sendany.core.logging import get_logger
from sendany.db import get_db
from sendany.schemas.health import HealthResponse
from sendany.services.reaper import get_reaper_service

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Check application health.

    Returns:
        Health status, application version and database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning("health_database_unreachable", error=str(e))
        database = "disconnected"

    return HealthResponse(
        status="ok",
        version=settings.version,
        database=database,
        google_oauth_configured=settings.google_oauth_configured,
        reaper_running=get_reaper_service().running,
    )
