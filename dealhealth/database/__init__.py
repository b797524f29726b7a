"""
Database Package
Async engine, request-scoped sessions and the declarative base for the deal models.
"""

from dealhealth.database.base import Base
from dealhealth.database.connection import (
    async_session_factory,
    close_db,
    get_async_session,
)

__all__ = [
    "Base",
    "async_session_factory",
    "close_db",
    "get_async_session",
]
