"""Where recordsync keeps its SQLite database and uploaded files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "recordsync"
DEFAULT_DB_FILENAME: Final[str] = "recordsync.db"
UPLOAD_DIR_NAME: Final[str] = "uploads"

DATA_DIR_ENV: Final[str] = "RECORDSYNC_DATA_DIR"
UPLOAD_DIR_ENV: Final[str] = "RECORDSYNC_UPLOAD_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"


def _ensure(path: Path, *, ensure: bool) -> Path:
    if ensure:
        path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Filesystem layout; ``upload_root`` overrides ``<data_dir>/uploads``."""

    data_dir: Path
    upload_root: Path | None = None
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self, *, ensure: bool = True) -> Path:
        return _ensure(self.resolve_data_dir(), ensure=ensure) / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"

    def upload_dir(self, *, ensure: bool = True) -> Path:
        if self.upload_root is not None:
            root = self.upload_root.expanduser().resolve()
        else:
            root = self.resolve_data_dir() / UPLOAD_DIR_NAME
        return _ensure(root, ensure=ensure)


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def _env_path(name: str) -> Path | None:
    raw = os.getenv(name)
    return Path(raw) if raw and raw.strip() else None


def get_storage_config() -> StorageConfig:
    return StorageConfig(
        data_dir=_env_path(DATA_DIR_ENV) or _default_data_dir(),
        upload_root=_env_path(UPLOAD_DIR_ENV),
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    env_uri = os.getenv(DATABASE_URI_ENV)
    if env_uri and env_uri.strip():
        return DatabaseConfig(uri=env_uri.strip())
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri())
