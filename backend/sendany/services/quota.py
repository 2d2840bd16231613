"""Storage quota validation.

Three independent ceilings are checked in order and the first violation
wins: per-file, per-workspace, per-user.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from sendany.core.config import settings


class QuotaScope(str, enum.Enum):
    """Which ceiling a rejected upload would exceed."""

    FILE = "file"
    WORKSPACE = "workspace"
    USER = "user"


@dataclass(frozen=True)
class QuotaLimits:
    """Configured ceilings in bytes."""

    max_file_size: int
    max_workspace_size: int
    max_user_storage: int

    @classmethod
    def from_settings(cls) -> QuotaLimits:
        return cls(
            max_file_size=settings.max_file_size,
            max_workspace_size=settings.max_workspace_size,
            max_user_storage=settings.max_user_storage,
        )


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""

    allowed: bool
    scope: QuotaScope | None = None
    reason: str | None = None


ALLOWED = QuotaDecision(allowed=True)


def _mb(value: int) -> str:
    return f"{value / (1024 * 1024):g}MB"


def validate(
    file_size: int,
    current_workspace_size: int,
    current_user_storage: int,
    limits: QuotaLimits | None = None,
) -> QuotaDecision:
    """Check a candidate upload against the three ceilings.

    Pure function, safe to call speculatively.

    Args:
        file_size: Size of the file to upload.
        current_workspace_size: Bytes already stored in the target workspace.
        current_user_storage: Bytes already stored across the user's workspaces.
        limits: Ceilings to apply, defaults to the configured ones.

    Returns:
        ``ALLOWED`` or a rejected decision naming the violated scope.
    """
    limits = limits or QuotaLimits.from_settings()

    if file_size > limits.max_file_size:
        return QuotaDecision(
            allowed=False,
            scope=QuotaScope.FILE,
            reason=f"File too large: limit is {_mb(limits.max_file_size)}",
        )

    if current_workspace_size + file_size > limits.max_workspace_size:
        return QuotaDecision(
            allowed=False,
            scope=QuotaScope.WORKSPACE,
            reason=f"Workspace size limit of {_mb(limits.max_workspace_size)} would be exceeded",
        )

    if current_user_storage + file_size > limits.max_user_storage:
        return QuotaDecision(
            allowed=False,
            scope=QuotaScope.USER,
            reason=f"User storage limit of {_mb(limits.max_user_storage)} would be exceeded",
        )

    return ALLOWED
