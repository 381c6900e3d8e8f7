"""Wire-level request schemas."""

from __future__ import annotations

from .schema import (
    AuthenticateRequest,
    CommitRequest,
    FindRequest,
    RefreshRequest,
    UploadRequest,
)

__all__ = [
    "AuthenticateRequest",
    "CommitRequest",
    "FindRequest",
    "RefreshRequest",
    "UploadRequest",
]
