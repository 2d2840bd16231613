"""Enum types for database models."""

from __future__ import annotations

import enum


class FileType(str, enum.Enum):
    """Kind of content a workspace file holds."""

    TEXT = "text"
    CODE = "code"
    MARKDOWN = "markdown"
    FILE = "file"  # Uploaded binary stored in Google Drive
