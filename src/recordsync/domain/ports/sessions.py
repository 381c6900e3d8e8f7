"""Session storage port used by the session gate."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from recordsync.domain.envelope import RecordId


@runtime_checkable
class SessionStore(Protocol):
    def current(self) -> tuple[str, RecordId] | None: ...

    def establish(self, type_name: str, record_id: RecordId) -> None: ...

    def clear(self) -> None: ...
