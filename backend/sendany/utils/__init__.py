"""Utility functions for SendAny."""

from sendany.utils.timestamps import as_utc, utcnow

__all__ = [
    "as_utc",
    "utcnow",
]
