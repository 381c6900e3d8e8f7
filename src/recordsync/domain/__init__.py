"""Protocol engines: eager resolution, refresh, search, commit and sessions."""

from __future__ import annotations

from .auth import AuthResult, LoginAttempt, SessionGate, credential_digest
from .commit import (
    ChangeSet,
    CommitBatch,
    CommitEngine,
    DestroyRequest,
    RecordChange,
    RelationChange,
)
from .envelope import Envelope, PageData, RecordId, RecordPayload, RelationBucket
from .errors import (
    NotAuthenticatedError,
    RecordValidationError,
    RelationConfigurationError,
    RequestError,
    SyncError,
    UnknownTypeError,
)
from .refresh import RefreshEngine, RelationRefresh
from .registry import (
    Cardinality,
    RelationDescriptor,
    RelationKind,
    TypeDescriptor,
    TypeRegistry,
)
from .resolution import EagerResolver
from .search import SearchEngine, SearchQuery, paginate
from .upload import store_upload

__all__ = [
    "AuthResult",
    "Cardinality",
    "ChangeSet",
    "CommitBatch",
    "CommitEngine",
    "DestroyRequest",
    "EagerResolver",
    "Envelope",
    "LoginAttempt",
    "NotAuthenticatedError",
    "PageData",
    "RecordChange",
    "RecordId",
    "RecordPayload",
    "RecordValidationError",
    "RefreshEngine",
    "RelationBucket",
    "RelationChange",
    "RelationConfigurationError",
    "RelationDescriptor",
    "RelationKind",
    "RelationRefresh",
    "RequestError",
    "SearchEngine",
    "SearchQuery",
    "SessionGate",
    "SyncError",
    "TypeDescriptor",
    "TypeRegistry",
    "UnknownTypeError",
    "credential_digest",
    "paginate",
    "store_upload",
]
