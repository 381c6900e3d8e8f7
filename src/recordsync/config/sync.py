"""Protocol defaults for refresh, search and commit handling."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_bool_env, optional_int_env

MAX_PAGE_SIZE_ENV = "RECORDSYNC_MAX_PAGE_SIZE"
REQUIRE_SESSION_ENV = "RECORDSYNC_REQUIRE_SESSION"

DEFAULT_FOREIGN_KEY_SUFFIX = "_id"
DEFAULT_TEMPORARY_ID_PATTERN = r"^c\d+$"
DEFAULT_MAX_PAGE_SIZE = 0


@dataclass(frozen=True, slots=True)
class SyncConfig:
    foreign_key_suffix: str = DEFAULT_FOREIGN_KEY_SUFFIX
    temporary_id_pattern: str = DEFAULT_TEMPORARY_ID_PATTERN
    # 0 disables the server-side cap
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE
    # refresh, find, commit and upload need an established session
    require_session: bool = False


def get_sync_config() -> SyncConfig:
    max_page_size = optional_int_env(MAX_PAGE_SIZE_ENV, DEFAULT_MAX_PAGE_SIZE)
    return SyncConfig(
        max_page_size=max(0, max_page_size),
        require_session=optional_bool_env(REQUIRE_SESSION_ENV, default=False),
    )
