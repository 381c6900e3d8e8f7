"""Attach an uploaded file to a freshly created record."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import RequestError

if TYPE_CHECKING:
    from .envelope import RecordId
    from .ports.unit_of_work import SyncUnitOfWork
    from .ports.uploads import UploadedFile, UploadStorage

log = logging.getLogger(__name__)


def store_upload(
    uow: SyncUnitOfWork,
    storage: UploadStorage,
    *,
    type_name: str,
    attribute: str,
    upload: UploadedFile,
) -> RecordId:
    """Create a ``type_name`` record whose ``attribute`` references ``upload``.

    Commits ``uow``. The stored file is discarded again unless the commit
    succeeds.
    """

    store = uow.stores.store(type_name)
    if not store.accepts_attribute(attribute):
        raise RequestError(f"Unknown upload attribute {attribute!r} for {type_name}")

    reference = storage.save(type_name, attribute, upload)
    try:
        record = store.create({attribute: reference})
        record_id = store.record_id(record)
        uow.commit()
    except Exception:
        log.debug("Discarding stored upload %s", reference)
        storage.discard(reference)
        raise
    log.info("Stored upload %r on %s %s.%s", upload.filename, type_name, record_id, attribute)
    return record_id
