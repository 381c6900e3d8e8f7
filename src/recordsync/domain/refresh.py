"""Refresh engine: fetch requested records and resolve their eager relations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .envelope import Envelope
from .resolution import EagerResolver, new_expansion_memo

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .envelope import RecordId
    from .ports.persistence import RecordStore, RecordStores

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RelationRefresh:
    """Explicit request for the membership of ``relation_name`` on some records."""

    type_name: str
    relation_name: str
    ids: tuple[object, ...]


def unique_ids(store: RecordStore, raw_ids: Iterable[object]) -> list[RecordId]:
    """Coerce ids to the store's key type, dropping duplicates but keeping order."""
    return list(dict.fromkeys(store.coerce_id(raw) for raw in raw_ids))


class RefreshEngine:
    def __init__(self, stores: RecordStores) -> None:
        self.stores = stores
        self.registry = stores.registry
        self.resolver = EagerResolver(stores)

    def refresh(
        self,
        requested: Mapping[str, Sequence[object]],
        *,
        relations: Sequence[RelationRefresh] = (),
    ) -> Envelope:
        """Return an envelope holding ``requested`` records and their eager closure.

        Requested ids that no longer exist are reported as stale instead of
        being silently dropped.
        """

        envelope = Envelope()
        ids_by_type: dict[str, list[object]] = {
            type_name: list(ids) for type_name, ids in requested.items()
        }
        for relation_request in relations:
            target_type, target_ids = self._refresh_relation(relation_request, envelope)
            ids_by_type.setdefault(target_type, []).extend(target_ids)

        roots: list[tuple[str, list[Any]]] = []
        for type_name, raw_ids in ids_by_type.items():
            roots.append((type_name, self._fetch_roots(type_name, raw_ids, envelope)))

        memo = new_expansion_memo()
        for type_name, records in roots:
            self.resolver.resolve(type_name, records, envelope, memo=memo)

        log.debug(
            "Refreshed %s",
            ", ".join(f"{name}={len(records)}" for name, records in envelope.models.items()),
        )
        return envelope

    def _fetch_roots(
        self, type_name: str, raw_ids: Sequence[object], envelope: Envelope
    ) -> list[Any]:
        store = self.stores.store(type_name)
        ids = unique_ids(store, raw_ids)
        envelope.models.setdefault(type_name, {})
        if not ids:
            return []

        records = store.find_by_ids(ids)
        found: set[RecordId] = set()
        for record in records:
            record_id = store.record_id(record)
            found.add(record_id)
            envelope.add_record(type_name, record_id, store.serialize(record))

        for record_id in ids:
            if record_id not in found:
                log.info("Requested %s %s no longer exists", type_name, record_id)
                envelope.mark_stale(type_name, record_id)
        return records

    def _refresh_relation(
        self, request: RelationRefresh, envelope: Envelope
    ) -> tuple[str, list[RecordId]]:
        relation = self.registry.requested_relation(request.type_name, request.relation_name)
        store = self.stores.store(request.type_name)
        target_store = self.stores.store(relation.target_type)
        bucket = envelope.relation_bucket(
            request.type_name, relation.name, relation.attribute_name
        )

        ids = unique_ids(store, request.ids)
        sources = store.find_by_ids(ids) if ids else []
        found = {store.record_id(record) for record in sources}
        for record_id in ids:
            if record_id in found:
                bucket.touch(record_id)
            else:
                envelope.mark_stale(request.type_name, record_id)

        target_ids: list[RecordId] = []
        for source_id, target in store.get_related(sources, relation):
            target_id = target_store.record_id(target)
            bucket.add_edge(source_id, target_id)
            target_ids.append(target_id)
        return relation.target_type, target_ids
