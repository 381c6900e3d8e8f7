"""Local filesystem storage for uploaded files."""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from recordsync.config.storage import get_storage_config

if TYPE_CHECKING:
    from recordsync.domain.ports.uploads import UploadedFile

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(value: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", Path(value).name).strip("._")
    return cleaned or "upload"


class LocalUploadStorage:
    """Store uploads under ``<root>/<type>/<attribute>/<uuid>-<filename>``.

    The returned reference is the path relative to ``root``.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or get_storage_config().upload_dir()).expanduser().resolve()

    def save(self, type_name: str, attribute: str, upload: UploadedFile) -> str:
        relative = (
            Path(_safe_name(type_name))
            / _safe_name(attribute)
            / f"{uuid.uuid4().hex}-{_safe_name(upload.filename)}"
        )
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(upload.content)
        log.debug("Wrote %d bytes to %s", len(upload.content), target)
        return relative.as_posix()

    def path_for(self, reference: str) -> Path:
        target = (self.root / reference).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Upload reference {reference!r} escapes the storage root")
        return target

    def discard(self, reference: str) -> None:
        self.path_for(reference).unlink(missing_ok=True)


if TYPE_CHECKING:
    from recordsync.domain.ports import UploadStorage

    _upload_check: UploadStorage = LocalUploadStorage()
