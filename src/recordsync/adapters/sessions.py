"""Session store over a mutable mapping such as a web framework's session dict."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import MutableMapping

    from recordsync.domain.envelope import RecordId

CURRENT_USER_KEY: Final[str] = "current_user"
CURRENT_USER_TYPE_KEY: Final[str] = "current_user_type"


class MappingSessionStore:
    def __init__(self, data: MutableMapping[str, object] | None = None) -> None:
        self.data: MutableMapping[str, object] = data if data is not None else {}

    def current(self) -> tuple[str, RecordId] | None:
        record_id = self.data.get(CURRENT_USER_KEY)
        type_name = self.data.get(CURRENT_USER_TYPE_KEY)
        if not isinstance(record_id, int | str) or not isinstance(type_name, str):
            return None
        return type_name, record_id

    def establish(self, type_name: str, record_id: RecordId) -> None:
        self.data[CURRENT_USER_TYPE_KEY] = type_name
        self.data[CURRENT_USER_KEY] = record_id

    def clear(self) -> None:
        self.data.pop(CURRENT_USER_TYPE_KEY, None)
        self.data.pop(CURRENT_USER_KEY, None)


if TYPE_CHECKING:
    from recordsync.domain.ports import SessionStore

    _session_check: SessionStore = MappingSessionStore()
