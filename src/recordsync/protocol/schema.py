"""Pydantic models describing the protocol's request payloads.

Field names follow the wire format (``railsClass``, ``refreshModels``...);
each request converts itself into the domain objects the engines consume.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from pydantic import (
    Base64Bytes,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from recordsync.domain.auth import LoginAttempt
from recordsync.domain.commit import (
    ChangeSet,
    CommitBatch,
    DestroyRequest,
    RecordChange,
    RelationChange,
)
from recordsync.domain.ports.uploads import UploadedFile
from recordsync.domain.refresh import RelationRefresh
from recordsync.domain.search import SearchQuery

WireId = int | str

RESERVED_RECORD_KEYS = frozenset({"id", "cid"})


class ProtocolModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ModelIds(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    ids: list[WireId] | None = None


def _ids_by_type(models: Mapping[str, ModelIds] | None) -> dict[str, list[WireId]]:
    requested: dict[str, list[WireId]] = {}
    for info in (models or {}).values():
        requested.setdefault(info.rails_class, []).extend(info.ids or [])
    return requested


# authenticate ------------------------------------------------------------------


class Credentials(ProtocolModel):
    login: str
    token: str
    hash: str


class AuthModel(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    model: Credentials


class AuthenticateRequest(ProtocolModel):
    auth_model: AuthModel | None = Field(default=None, alias="authModel")

    def to_attempt(self) -> LoginAttempt | None:
        if self.auth_model is None:
            return None
        credentials = self.auth_model.model
        return LoginAttempt(
            type_name=self.auth_model.rails_class,
            login=credentials.login,
            token=credentials.token,
            digest=credentials.hash,
        )


# refresh -----------------------------------------------------------------------


class RelationIds(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    relation_type: str | None = Field(default=None, alias="relationType")
    rails_relation_attribute: str | None = Field(default=None, alias="railsRelationAttribute")
    ids: list[WireId] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_relation(self) -> RelationIds:
        if not (self.relation_type or self.rails_relation_attribute):
            raise ValueError("relationType is required")
        return self

    @property
    def relation_name(self) -> str:
        return self.relation_type or self.rails_relation_attribute or ""


class RefreshRequest(ProtocolModel):
    relations: dict[str, RelationIds] | None = None
    refresh_models: dict[str, ModelIds] | None = Field(default=None, alias="refreshModels")

    def requested(self) -> dict[str, list[WireId]]:
        return _ids_by_type(self.refresh_models)

    def relation_requests(self) -> list[RelationRefresh]:
        return [
            RelationRefresh(
                type_name=info.rails_class,
                relation_name=info.relation_name,
                ids=tuple(info.ids),
            )
            for info in (self.relations or {}).values()
        ]


# find --------------------------------------------------------------------------


class SearchModel(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    search_params: dict[str, Any] = Field(default_factory=dict, alias="searchParams")
    page: int | None = None
    limit: int | None = None

    @field_validator("page", "limit", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_query(self) -> SearchQuery:
        return SearchQuery(
            type_name=self.rails_class,
            criteria=self.search_params,
            page=self.page or 1,
            page_size=self.limit or 0,
        )


class FindRequest(ProtocolModel):
    search_models: list[SearchModel] | None = Field(default=None, alias="searchModels")

    @field_validator("search_models", mode="before")
    @classmethod
    def _single_as_list(cls, value: object) -> object:
        if isinstance(value, Mapping):
            return [value]
        return value

    def to_queries(self) -> list[SearchQuery]:
        return [model.to_query() for model in self.search_models or []]


# commit ------------------------------------------------------------------------


class CommitModels(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    data: list[dict[str, Any]] = Field(default_factory=list)


class DestroyTarget(ProtocolModel):
    id: WireId | None = None


class RelationTargets(ProtocolModel):
    rails_class: str | None = Field(default=None, alias="railsClass")
    ids: list[WireId] | None = None

    @field_validator("ids", mode="before")
    @classmethod
    def _non_list_as_empty(cls, value: object) -> object:
        if value is not None and not isinstance(value, list):
            return []
        return value


class RelationModels(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    models: dict[str, dict[str, RelationTargets | None]] = Field(default_factory=dict)

    def changes(self) -> list[RelationChange]:
        changes: list[RelationChange] = []
        for source_id, by_relation in self.models.items():
            for relation_name, targets in by_relation.items():
                if targets is None:
                    continue
                changes.append(
                    RelationChange(
                        type_name=self.rails_class,
                        source_id=source_id,
                        relation_name=relation_name,
                        ids=tuple(targets.ids or ()),
                    )
                )
        return changes


def _record_change(data: Mapping[str, Any]) -> RecordChange:
    raw_cid = data.get("cid")
    return RecordChange(
        attributes={key: value for key, value in data.items() if key not in RESERVED_RECORD_KEYS},
        id=data.get("id"),
        cid=str(raw_cid) if raw_cid is not None else None,
    )


class CommitRequest(ProtocolModel):
    commit_models: dict[str, CommitModels] | None = Field(default=None, alias="commitModels")
    destroy_models: dict[str, list[DestroyTarget]] | None = Field(
        default=None, alias="destroyModels"
    )
    create_relations: dict[str, RelationModels] | None = Field(
        default=None, alias="createRelations"
    )
    destroy_relations: dict[str, RelationModels] | None = Field(
        default=None, alias="destroyRelations"
    )
    refresh_models: dict[str, ModelIds] | None = Field(default=None, alias="refreshModels")

    def to_batch(self) -> CommitBatch:
        changes = tuple(
            ChangeSet(
                key=key,
                type_name=info.rails_class,
                records=tuple(_record_change(data) for data in info.data),
            )
            for key, info in (self.commit_models or {}).items()
        )
        destroys = tuple(
            DestroyRequest(
                type_name=type_name,
                ids=tuple(target.id for target in targets if target.id is not None),
            )
            for type_name, targets in (self.destroy_models or {}).items()
        )
        attach = tuple(
            change
            for models in (self.create_relations or {}).values()
            for change in models.changes()
        )
        detach = tuple(
            change
            for models in (self.destroy_relations or {}).values()
            for change in models.changes()
        )
        return CommitBatch(
            changes=changes,
            destroys=destroys,
            attach=attach,
            detach=detach,
            refresh=cast("dict[str, list[object]]", _ids_by_type(self.refresh_models)),
        )


# upload ------------------------------------------------------------------------


class FilePayload(ProtocolModel):
    filename: str
    content: Base64Bytes
    content_type: str | None = Field(default=None, alias="contentType")

    def to_upload(self) -> UploadedFile:
        return UploadedFile(
            filename=self.filename, content=self.content, content_type=self.content_type
        )


class UploadRequest(ProtocolModel):
    rails_class: str = Field(alias="railsClass")
    rails_attr: str = Field(alias="railsAttr")
    file: FilePayload | None = None
