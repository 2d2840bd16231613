"""Storage broker services for SendAny."""

from sendany.services.credentials import ensure_fresh
from sendany.services.quota import QuotaDecision, QuotaLimits, QuotaScope, validate
from sendany.services.reaper import ExpiryReaper, ReapResult, ReaperService, get_reaper_service
from sendany.services.token_store import CredentialRecord, NotConnectedError, TokenStore
from sendany.services.upload import (
    FileRecordNotFoundError,
    QuotaExceededError,
    UploadError,
    UploadFailedError,
    UploadOrchestrator,
    UploadResult,
    UploadStage,
    WorkspaceAccessDeniedError,
    WorkspaceNotFoundError,
)
from sendany.services.usage import reconcile_usage
from sendany.services.workspaces import WorkspaceStore

__all__ = [
    # Credentials
    "CredentialRecord",
    "NotConnectedError",
    "TokenStore",
    "ensure_fresh",
    # Quota
    "QuotaDecision",
    "QuotaLimits",
    "QuotaScope",
    "validate",
    # Uploads
    "FileRecordNotFoundError",
    "QuotaExceededError",
    "UploadError",
    "UploadFailedError",
    "UploadOrchestrator",
    "UploadResult",
    "UploadStage",
    "WorkspaceAccessDeniedError",
    "WorkspaceNotFoundError",
    "WorkspaceStore",
    # Reaper
    "ExpiryReaper",
    "ReapResult",
    "ReaperService",
    "get_reaper_service",
    "reconcile_usage",
]
