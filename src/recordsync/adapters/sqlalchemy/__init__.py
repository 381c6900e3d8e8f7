"""SQLAlchemy adapter package for recordsync."""

from __future__ import annotations

from .store import ORDER_KEY, SearchHook, SqlAlchemyRecordStore
from .unit_of_work import (
    SqlAlchemyRecordStores,
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "ORDER_KEY",
    "SearchHook",
    "SqlAlchemyRecordStore",
    "SqlAlchemyRecordStores",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "configured_engine",
    "is_started",
    "shutdown",
    "startup",
]
