"""Commit engine: apply a batch of writes atomically and return a fresh snapshot.

Phases run in a fixed order: create/update, deferred foreign-key resolution,
destroy, relation attach, relation detach, response assembly. Any
``SyncError`` raised by a phase propagates to the caller, whose unit of work
rolls back everything written by the earlier phases.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from recordsync.config.sync import SyncConfig

from .errors import RequestError
from .refresh import RefreshEngine, unique_ids

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .envelope import Envelope, RecordId
    from .ports.persistence import RecordStore, RecordStores
    from .registry import RelationDescriptor

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecordChange:
    """One record of a commit batch: a create when ``id`` is absent."""

    attributes: Mapping[str, object]
    id: object | None = None
    cid: str | None = None


@dataclass(frozen=True, slots=True)
class ChangeSet:
    key: str
    type_name: str
    records: tuple[RecordChange, ...]


@dataclass(frozen=True, slots=True)
class DestroyRequest:
    type_name: str
    ids: tuple[object, ...]


@dataclass(frozen=True, slots=True)
class RelationChange:
    type_name: str
    source_id: object
    relation_name: str
    ids: tuple[object, ...]


@dataclass(frozen=True, slots=True)
class CommitBatch:
    changes: tuple[ChangeSet, ...] = ()
    destroys: tuple[DestroyRequest, ...] = ()
    attach: tuple[RelationChange, ...] = ()
    detach: tuple[RelationChange, ...] = ()
    refresh: Mapping[str, Sequence[object]] = field(default_factory=dict)


@dataclass(slots=True)
class DeferredReference:
    """Foreign key waiting for the record created under ``temporary_id``."""

    type_name: str
    record: Any
    attribute: str
    temporary_id: str


@dataclass(slots=True)
class _CommitState:
    created: dict[str, RecordId] = field(default_factory=dict)
    created_keys: dict[str, tuple[str, RecordId]] = field(default_factory=dict)
    deferred: list[DeferredReference] = field(default_factory=list)
    touched: dict[str, list[RecordId]] = field(default_factory=dict)
    destroyed: set[tuple[str, RecordId]] = field(default_factory=set)

    def touch(self, type_name: str, record_id: RecordId) -> None:
        ids = self.touched.setdefault(type_name, [])
        if record_id not in ids:
            ids.append(record_id)


class CommitEngine:
    def __init__(
        self,
        stores: RecordStores,
        *,
        config: SyncConfig | None = None,
        refresh: RefreshEngine | None = None,
    ) -> None:
        self.stores = stores
        self.registry = stores.registry
        self.config = config or SyncConfig()
        self.refresh_engine = refresh or RefreshEngine(stores)
        self._temporary_id = re.compile(self.config.temporary_id_pattern)

    def commit(self, batch: CommitBatch) -> Envelope:
        state = _CommitState()
        for change_set in batch.changes:
            self._apply_change_set(change_set, state)
        self._resolve_deferred(state)
        for request in batch.destroys:
            self._destroy(request, state)
        for change in batch.attach:
            self._attach(change, state)
        for change in batch.detach:
            self._detach(change, state)

        log.info(
            "Committed batch: created=%d, deferred=%d, destroyed=%d, attached=%d, detached=%d",
            len(state.created_keys),
            len(state.deferred),
            len(state.destroyed),
            len(batch.attach),
            len(batch.detach),
        )
        return self._assemble(batch, state)

    def is_temporary_reference(self, attribute: str, value: object) -> bool:
        return (
            attribute.endswith(self.config.foreign_key_suffix)
            and isinstance(value, str)
            and self._temporary_id.fullmatch(value) is not None
        )

    # Phase 1 -------------------------------------------------------------------

    def _apply_change_set(self, change_set: ChangeSet, state: _CommitState) -> None:
        store = self.stores.store(change_set.type_name)
        for change in change_set.records:
            immediate: dict[str, object] = {}
            pending: dict[str, str] = {}
            for attribute, value in change.attributes.items():
                if self.is_temporary_reference(attribute, value):
                    pending[attribute] = str(value)
                else:
                    immediate[attribute] = value

            if change.id is None:
                record = store.create(immediate)
                record_id = store.record_id(record)
                if change.cid is not None:
                    if change.cid in state.created:
                        raise RequestError(f"Client id {change.cid!r} used twice in one batch")
                    state.created[change.cid] = record_id
                    state.created_keys[change.cid] = (change_set.key, record_id)
            else:
                record = self._find_one(store, change_set.type_name, change.id)
                record_id = store.record_id(record)
                store.update(record, immediate)

            state.touch(change_set.type_name, record_id)
            state.deferred.extend(
                DeferredReference(
                    type_name=change_set.type_name,
                    record=record,
                    attribute=attribute,
                    temporary_id=temporary_id,
                )
                for attribute, temporary_id in pending.items()
            )

    # Phase 2 -------------------------------------------------------------------

    def _resolve_deferred(self, state: _CommitState) -> None:
        for reference in state.deferred:
            target_id = state.created.get(reference.temporary_id)
            if target_id is None:
                raise RequestError(
                    f"Unresolved client reference {reference.temporary_id!r} "
                    f"for {reference.type_name}.{reference.attribute}"
                )
            store = self.stores.store(reference.type_name)
            store.update(reference.record, {reference.attribute: target_id})

    # Phase 3 -------------------------------------------------------------------

    def _destroy(self, request: DestroyRequest, state: _CommitState) -> None:
        store = self.stores.store(request.type_name)
        for record_id in self._resolve_ids(store, request.ids, state):
            store.delete(record_id)
            state.destroyed.add((request.type_name, record_id))

    # Phases 4 and 5 ------------------------------------------------------------

    def _attach(self, change: RelationChange, state: _CommitState) -> None:
        relation, store, source = self._relation_source(change, state)
        target_store = self.stores.store(relation.target_type)
        current = self._related_ids(store, target_store, source, relation)
        wanted = self._resolve_ids(target_store, change.ids, state)
        missing = [target_id for target_id in wanted if target_id not in current]
        targets = target_store.find_by_ids(missing) if missing else []
        if targets:
            store.add_related(source, relation, targets)
        for target in targets:
            state.touch(relation.target_type, target_store.record_id(target))

    def _detach(self, change: RelationChange, state: _CommitState) -> None:
        if not change.ids:
            return
        relation, store, source = self._relation_source(change, state)
        target_store = self.stores.store(relation.target_type)
        removed = set(self._resolve_ids(target_store, change.ids, state))
        related = [target for _, target in store.get_related([source], relation)]
        kept = [target for target in related if target_store.record_id(target) not in removed]
        if len(kept) != len(related):
            store.set_related(source, relation, kept)
        for target in related:
            target_id = target_store.record_id(target)
            if target_id in removed:
                state.touch(relation.target_type, target_id)

    def _relation_source(
        self, change: RelationChange, state: _CommitState
    ) -> tuple[RelationDescriptor, RecordStore, Any]:
        relation = self.registry.requested_relation(change.type_name, change.relation_name)
        store = self.stores.store(change.type_name)
        source = self._find_one(store, change.type_name, self._resolve_id(change.source_id, state))
        state.touch(change.type_name, store.record_id(source))
        return relation, store, source

    @staticmethod
    def _related_ids(
        store: RecordStore, target_store: RecordStore, source: Any, relation: RelationDescriptor
    ) -> set[RecordId]:
        related = store.get_related([source], relation)
        return {target_store.record_id(target) for _, target in related}

    # Phase 6 -------------------------------------------------------------------

    def _assemble(self, batch: CommitBatch, state: _CommitState) -> Envelope:
        requested: dict[str, list[object]] = {}
        for type_name, ids in state.touched.items():
            kept = [
                record_id for record_id in ids if (type_name, record_id) not in state.destroyed
            ]
            if kept:
                requested.setdefault(type_name, []).extend(kept)
        for type_name, ids in batch.refresh.items():
            requested.setdefault(type_name, []).extend(ids)

        envelope = self.refresh_engine.refresh(requested)
        for cid, (key, record_id) in state.created_keys.items():
            envelope.record_created(key, cid, record_id)
        return envelope

    # Helpers -------------------------------------------------------------------

    def _resolve_ids(
        self, store: RecordStore, raw_ids: Sequence[object], state: _CommitState
    ) -> list[RecordId]:
        return unique_ids(store, (self._resolve_id(raw, state) for raw in raw_ids))

    def _resolve_id(self, raw: object, state: _CommitState) -> object:
        """Map a client-temporary id to the id assigned earlier in this batch."""
        if isinstance(raw, str) and raw in state.created:
            return state.created[raw]
        return raw

    @staticmethod
    def _find_one(store: RecordStore, type_name: str, raw_id: object) -> Any:
        record_id = store.coerce_id(raw_id)
        records = store.find_by_ids([record_id])
        if not records:
            raise RequestError(f"{type_name} {record_id} does not exist")
        return records[0]
