"""API router that aggregates all routes."""

from fastapi import APIRouter

from sendany.api.routes import cleanup, drive, google, health, upload

api_router = APIRouter(prefix="/api")

# Include route modules
api_router.include_router(health.router)

# V1 API routes
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(cleanup.router)
v1_router.include_router(drive.router)
v1_router.include_router(google.router)
v1_router.include_router(upload.router)

api_router.include_router(v1_router)
