"""SQLAlchemy-backed unit of work for protocol operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, cast

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from recordsync.config.storage import get_database_config

from .store import SqlAlchemyRecordStore

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from sqlalchemy import MetaData
    from sqlalchemy.engine import Engine

    from recordsync.domain.registry import TypeRegistry

    from .store import SearchHook

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call recordsync.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    metadata: MetaData | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine and session factory.

    The host application owns its schema; pass ``metadata`` to create missing
    tables on startup.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(
        database_uri or get_database_config().uri, future=True
    )
    if metadata is not None:
        metadata.create_all(resolved_engine)

    _STATE.engine = resolved_engine
    log.info("SQLAlchemy adapter started on %s", resolved_engine.url.render_as_string())


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyRecordStores:
    """Record stores for every registered type, bound to one session."""

    def __init__(
        self,
        session: Session,
        registry: TypeRegistry,
        *,
        search_hooks: Mapping[str, SearchHook] | None = None,
    ) -> None:
        self.session = session
        self._registry = registry
        self._search_hooks = dict(search_hooks or {})
        self._stores: dict[str, SqlAlchemyRecordStore] = {}

    @property
    def registry(self) -> TypeRegistry:
        return self._registry

    def store(self, type_name: str) -> SqlAlchemyRecordStore:
        store = self._stores.get(type_name)
        if store is None:
            store = SqlAlchemyRecordStore(
                self.session,
                self._registry.get(type_name),
                search_hook=self._search_hooks.get(type_name),
            )
            self._stores[type_name] = store
        return store


class SqlAlchemyUnitOfWork:
    """Unit of work managing one SQLAlchemy session per protocol operation."""

    def __init__(
        self,
        registry: TypeRegistry,
        *,
        search_hooks: Mapping[str, SearchHook] | None = None,
    ) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self.registry = registry
        self.search_hooks = search_hooks
        self._session: Session | None = None
        self._stores: SqlAlchemyRecordStores | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session = self.session_factory()
        self._stores = SqlAlchemyRecordStores(
            self.session, self.registry, search_hooks=self.search_hooks
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        self._stores = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def stores(self) -> SqlAlchemyRecordStores:
        if self._stores is None:
            raise StartupError("Unit of work session not initialised")
        return self._stores

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


if TYPE_CHECKING:
    from recordsync.domain.ports import RecordStore, RecordStores, SyncUnitOfWork

    _registry_stub = cast("TypeRegistry", object())
    _uow_check: SyncUnitOfWork = SqlAlchemyUnitOfWork(_registry_stub)
    _stores_check: RecordStores = SqlAlchemyRecordStores(Session(), _registry_stub)
    _store_check: RecordStore = _stores_check.store("example")
