"""Response envelope accumulated by the refresh, search and commit engines.

The envelope is threaded explicitly through each phase. Merges are typed per
section: records are united by id within a type bucket, relation memberships
are united by edge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

type RecordId = int | str
type RecordPayload = dict[str, Any]


@dataclass(slots=True)
class RelationBucket:
    """Membership of one relation for every source record that was expanded."""

    attribute: str
    models: dict[RecordId, list[RecordId]] = field(default_factory=dict)

    def touch(self, source_id: RecordId) -> list[RecordId]:
        return self.models.setdefault(source_id, [])

    def add_edge(self, source_id: RecordId, target_id: RecordId) -> bool:
        targets = self.touch(source_id)
        if target_id in targets:
            return False
        targets.append(target_id)
        return True

    def merge(self, other: RelationBucket) -> None:
        for source_id, targets in other.models.items():
            self.touch(source_id)
            for target_id in targets:
                self.add_edge(source_id, target_id)

    def to_payload(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "models": {source_id: list(targets) for source_id, targets in self.models.items()},
        }


@dataclass(slots=True)
class PageData:
    ids: list[RecordId]
    page_size: int
    actual_page: int
    pages: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "ids": list(self.ids),
            "pageSize": self.page_size,
            "actualPage": self.actual_page,
            "pages": self.pages,
        }


@dataclass(slots=True)
class Envelope:
    models: dict[str, dict[RecordId, RecordPayload]] = field(default_factory=dict)
    relations: dict[str, dict[str, RelationBucket]] = field(default_factory=dict)
    page_data: dict[str, PageData] = field(default_factory=dict)
    models_ids: dict[str, dict[str, RecordId]] = field(default_factory=dict)
    stale: dict[str, list[RecordId]] = field(default_factory=dict)

    def has_record(self, type_name: str, record_id: RecordId) -> bool:
        return record_id in self.models.get(type_name, {})

    def add_record(self, type_name: str, record_id: RecordId, payload: RecordPayload) -> bool:
        """Insert a record unless the bucket already holds that id."""
        bucket = self.models.setdefault(type_name, {})
        if record_id in bucket:
            return False
        bucket[record_id] = payload
        return True

    def relation_bucket(self, type_name: str, relation_name: str, attribute: str) -> RelationBucket:
        by_relation = self.relations.setdefault(type_name, {})
        bucket = by_relation.get(relation_name)
        if bucket is None:
            bucket = by_relation[relation_name] = RelationBucket(attribute=attribute)
        return bucket

    def mark_stale(self, type_name: str, record_id: RecordId) -> None:
        stale = self.stale.setdefault(type_name, [])
        if record_id not in stale:
            stale.append(record_id)

    def record_created(self, batch_key: str, cid: str, record_id: RecordId) -> None:
        self.models_ids.setdefault(batch_key, {})[cid] = record_id

    def merge_models(self, other: Envelope) -> None:
        for type_name, records in other.models.items():
            self.models.setdefault(type_name, {})
            for record_id, payload in records.items():
                self.add_record(type_name, record_id, payload)

    def merge_relations(self, other: Envelope) -> None:
        for type_name, by_relation in other.relations.items():
            for relation_name, bucket in by_relation.items():
                self.relation_bucket(type_name, relation_name, bucket.attribute).merge(bucket)

    def merge(self, other: Envelope) -> None:
        self.merge_models(other)
        self.merge_relations(other)
        self.page_data.update(other.page_data)
        for batch_key, created in other.models_ids.items():
            self.models_ids.setdefault(batch_key, {}).update(created)
        for type_name, record_ids in other.stale.items():
            for record_id in record_ids:
                self.mark_stale(type_name, record_id)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "models": {
                type_name: list(records.values()) for type_name, records in self.models.items()
            },
            "relations": {
                type_name: {name: bucket.to_payload() for name, bucket in by_relation.items()}
                for type_name, by_relation in self.relations.items()
            },
        }
        if self.page_data:
            payload["pageData"] = {
                type_name: page.to_payload() for type_name, page in self.page_data.items()
            }
        if self.models_ids:
            payload["modelsIds"] = {key: dict(created) for key, created in self.models_ids.items()}
        if self.stale:
            payload["staleModels"] = {key: list(ids) for key, ids in self.stale.items()}
        return payload
