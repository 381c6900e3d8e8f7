from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from recordsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from recordsync.adapters.uploads import LocalUploadStorage
from recordsync.app import SyncService
from recordsync.config.sync import SyncConfig
from tests.helpers.library import SeededLibrary, build_registry, metadata, seed_library

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from recordsync.domain.registry import TypeRegistry


@pytest.fixture
def registry() -> TypeRegistry:
    return build_registry()


@pytest.fixture
def sqlite_engine(registry: TypeRegistry) -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
    registry: TypeRegistry,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(registry)

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def seeded(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> SeededLibrary:
    with sqlite_unit_of_work() as uow:
        library = seed_library(uow.session)
        uow.commit()
    return library


@pytest.fixture
def session_data() -> dict[str, object]:
    return {}


@pytest.fixture
def service(
    registry: TypeRegistry,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    tmp_path: Path,
) -> SyncService:
    return SyncService(
        registry,
        sqlite_unit_of_work,
        uploads=LocalUploadStorage(tmp_path / "uploads"),
        config=SyncConfig(),
    )
