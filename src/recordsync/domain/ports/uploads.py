"""File storage port used by the upload operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str | None = None


@runtime_checkable
class UploadStorage(Protocol):
    def save(self, type_name: str, attribute: str, upload: UploadedFile) -> str:
        """Persist ``upload`` and return the reference stored on the record."""
        ...

    def discard(self, reference: str) -> None:
        """Remove a stored file whose record could not be created."""
        ...
