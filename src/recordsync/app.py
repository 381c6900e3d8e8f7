"""Application orchestration entry points.

``SyncService`` exposes the protocol operations. Each call parses its payload,
runs inside one unit of work and returns the JSON-ready response; business
errors roll the unit of work back and come back as ``{"errors": [...]}``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, MutableMapping
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from recordsync.adapters.sessions import MappingSessionStore
from recordsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from recordsync.adapters.uploads import LocalUploadStorage
from recordsync.config.sync import SyncConfig, get_sync_config
from recordsync.domain.auth import SessionGate
from recordsync.domain.commit import CommitEngine
from recordsync.domain.errors import (
    NotAuthenticatedError,
    RequestError,
    SyncError,
    UnknownTypeError,
)
from recordsync.domain.ports.unit_of_work import SyncUnitOfWork
from recordsync.domain.refresh import RefreshEngine
from recordsync.domain.search import SearchEngine
from recordsync.domain.upload import store_upload
from recordsync.protocol.schema import (
    AuthenticateRequest,
    CommitRequest,
    FindRequest,
    RefreshRequest,
    UploadRequest,
)

if TYPE_CHECKING:
    from sqlalchemy import MetaData

    from recordsync.adapters.sqlalchemy.store import SearchHook
    from recordsync.domain.ports.sessions import SessionStore
    from recordsync.domain.ports.uploads import UploadedFile, UploadStorage
    from recordsync.domain.registry import TypeRegistry

UnitOfWorkFactory = Callable[[], SyncUnitOfWork]
type Response = dict[str, Any]
type SessionData = MutableMapping[str, object]

OPERATIONS = ("authenticate", "logout", "refresh", "find", "commit", "upload")
PUBLIC_OPERATIONS = frozenset({"authenticate", "logout"})

log = getLogger(__name__)


def _parse[TModel: BaseModel](model_cls: type[TModel], payload: Mapping[str, Any] | None) -> TModel:
    try:
        return model_cls.model_validate(payload or {})
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'payload'}: {error['msg']}"
            for error in exc.errors()
        )
        raise RequestError(f"Invalid {model_cls.__name__}: {messages}") from exc


class SyncService:
    """Protocol operations over one registry and one unit-of-work factory.

    The service holds no per-client state. Callers pass the client's session
    mapping (a web framework's session dict, for instance) with each call;
    without one the call runs against an empty, throwaway session.
    """

    def __init__(
        self,
        registry: TypeRegistry,
        unit_of_work_factory: UnitOfWorkFactory,
        *,
        uploads: UploadStorage | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        registry.validate()
        self.registry = registry
        self.unit_of_work_factory = unit_of_work_factory
        self._uploads = uploads
        self.config = config or get_sync_config()

    @property
    def uploads(self) -> UploadStorage:
        if self._uploads is None:
            self._uploads = LocalUploadStorage()
        return self._uploads

    def handle(
        self,
        operation: str,
        payload: Mapping[str, Any] | None = None,
        *,
        session: SessionData | None = None,
        upload: UploadedFile | None = None,
    ) -> Response:
        """Dispatch ``operation`` by name."""

        if operation == "logout":
            return self.logout(session=session)
        if operation == "upload":
            return self.upload(payload, session=session, upload=upload)
        handlers: dict[str, Callable[..., Response]] = {
            "authenticate": self.authenticate,
            "refresh": self.refresh,
            "find": self.find,
            "commit": self.commit,
        }
        handler = handlers.get(operation)
        if handler is None:
            log.warning("Rejected unknown operation %r", operation)
            return {"errors": RequestError(f"Unknown operation {operation!r}").to_payload()}
        return handler(payload, session=session)

    # Operations ----------------------------------------------------------------

    def authenticate(
        self, payload: Mapping[str, Any] | None, *, session: SessionData | None = None
    ) -> Response:
        sessions = MappingSessionStore(session)
        return self._run(
            "authenticate", partial(self._authenticate, payload, sessions), sessions
        )

    def logout(self, *, session: SessionData | None = None) -> Response:
        MappingSessionStore(session).clear()
        log.info("Session cleared")
        return {}

    def refresh(
        self, payload: Mapping[str, Any] | None, *, session: SessionData | None = None
    ) -> Response:
        return self._run("refresh", partial(self._refresh, payload), MappingSessionStore(session))

    def find(
        self, payload: Mapping[str, Any] | None, *, session: SessionData | None = None
    ) -> Response:
        return self._run("find", partial(self._find, payload), MappingSessionStore(session))

    def commit(
        self, payload: Mapping[str, Any] | None, *, session: SessionData | None = None
    ) -> Response:
        return self._run("commit", partial(self._commit, payload), MappingSessionStore(session))

    def upload(
        self,
        payload: Mapping[str, Any] | None,
        *,
        session: SessionData | None = None,
        upload: UploadedFile | None = None,
    ) -> Response:
        return self._run(
            "upload", partial(self._upload, payload, upload), MappingSessionStore(session)
        )

    # Unit-of-work bodies -------------------------------------------------------

    def _authenticate(
        self, payload: Mapping[str, Any] | None, sessions: SessionStore, uow: SyncUnitOfWork
    ) -> Response:
        attempt = _parse(AuthenticateRequest, payload).to_attempt()
        if attempt is None:
            return {}
        result = SessionGate(uow.stores, sessions).authenticate(attempt)
        return result.to_payload() if result is not None else {}

    def _refresh(self, payload: Mapping[str, Any] | None, uow: SyncUnitOfWork) -> Response:
        request = _parse(RefreshRequest, payload)
        envelope = RefreshEngine(uow.stores).refresh(
            request.requested(), relations=request.relation_requests()
        )
        return envelope.to_payload()

    def _find(self, payload: Mapping[str, Any] | None, uow: SyncUnitOfWork) -> Response:
        request = _parse(FindRequest, payload)
        engine = SearchEngine(uow.stores, max_page_size=self.config.max_page_size)
        return engine.search_all(request.to_queries()).to_payload()

    def _commit(self, payload: Mapping[str, Any] | None, uow: SyncUnitOfWork) -> Response:
        batch = _parse(CommitRequest, payload).to_batch()
        response = CommitEngine(uow.stores, config=self.config).commit(batch).to_payload()
        response.setdefault("modelsIds", {})
        return response

    def _upload(
        self,
        payload: Mapping[str, Any] | None,
        upload: UploadedFile | None,
        uow: SyncUnitOfWork,
    ) -> Response:
        request = _parse(UploadRequest, payload)
        upload = upload or (request.file.to_upload() if request.file is not None else None)
        if upload is None:
            raise RequestError("No file was uploaded")
        record_id = store_upload(
            uow,
            self.uploads,
            type_name=request.rails_class,
            attribute=request.rails_attr,
            upload=upload,
        )
        return {"success": True, "id": record_id}

    def _run(
        self,
        operation: str,
        work: Callable[[SyncUnitOfWork], Response],
        sessions: SessionStore,
    ) -> Response:
        if (
            self.config.require_session
            and operation not in PUBLIC_OPERATIONS
            and sessions.current() is None
        ):
            log.warning("%s rejected: no authenticated session", operation)
            return {"errors": NotAuthenticatedError().to_payload()}

        log.info("Starting %s", operation)
        try:
            with self.unit_of_work_factory() as uow:
                response = work(uow)
                uow.commit()
        except UnknownTypeError as exc:
            log.warning("%s rejected: %s", operation, exc)
            return {"errors": RequestError(str(exc)).to_payload()}
        except SyncError as exc:
            log.warning("%s failed: %s", operation, exc)
            return {"errors": exc.to_payload()}
        log.info("Finished %s", operation)
        return response


def build_sqlalchemy_service(
    registry: TypeRegistry,
    *,
    database_uri: str | None = None,
    metadata: MetaData | None = None,
    search_hooks: Mapping[str, SearchHook] | None = None,
    uploads: UploadStorage | None = None,
    config: SyncConfig | None = None,
) -> SyncService:
    """Start the SQLAlchemy adapter if needed and wire a ``SyncService`` to it."""

    if not is_started():
        startup(database_uri=database_uri, metadata=metadata)

    def unit_of_work_factory() -> SyncUnitOfWork:
        return SqlAlchemyUnitOfWork(registry, search_hooks=search_hooks)

    return SyncService(registry, unit_of_work_factory, uploads=uploads, config=config)
