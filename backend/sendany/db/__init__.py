"""Database package for SendAny."""

from sendany.db.base import Base
from sendany.db.session import async_session_maker, engine, get_db

__all__ = [
    "Base",
    "async_session_maker",
    "engine",
    "get_db",
]
