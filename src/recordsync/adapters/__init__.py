"""Adapters implementing the domain ports."""

from __future__ import annotations

from .sessions import MappingSessionStore
from .uploads import LocalUploadStorage

__all__ = ["LocalUploadStorage", "MappingSessionStore"]
