"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import RecordStore, RecordStores
from .sessions import SessionStore
from .unit_of_work import SyncUnitOfWork
from .uploads import UploadedFile, UploadStorage

__all__ = [
    "RecordStore",
    "RecordStores",
    "SessionStore",
    "SyncUnitOfWork",
    "UploadStorage",
    "UploadedFile",
]
