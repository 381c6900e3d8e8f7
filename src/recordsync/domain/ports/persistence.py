"""Ports for the relational persistence collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from recordsync.domain.envelope import RecordId, RecordPayload
    from recordsync.domain.registry import RelationDescriptor, TypeDescriptor, TypeRegistry


@runtime_checkable
class RecordStore(Protocol):
    """Persistence contract for one declared record type.

    ``create`` and ``update`` raise ``RecordValidationError`` when the record
    does not validate. Reads are ordered deterministically by primary key.
    """

    @property
    def descriptor(self) -> TypeDescriptor: ...

    def coerce_id(self, raw: object) -> RecordId: ...

    def record_id(self, record: Any) -> RecordId: ...

    def accepts_attribute(self, name: str) -> bool: ...

    def serialize(self, record: Any) -> RecordPayload: ...

    def find_by_ids(self, ids: Sequence[RecordId]) -> list[Any]: ...

    def find_by_filter(self, criteria: Mapping[str, object]) -> list[Any]: ...

    def search_ids(self, criteria: Mapping[str, object]) -> list[RecordId]: ...

    def create(self, attributes: Mapping[str, object]) -> Any: ...

    def update(self, record: Any, attributes: Mapping[str, object]) -> None: ...

    def delete(self, record_id: RecordId) -> None: ...

    def get_related(
        self, records: Sequence[Any], relation: RelationDescriptor
    ) -> list[tuple[RecordId, Any]]: ...

    def set_related(
        self, record: Any, relation: RelationDescriptor, targets: Sequence[Any]
    ) -> None: ...

    def add_related(
        self, record: Any, relation: RelationDescriptor, targets: Sequence[Any]
    ) -> None: ...


@runtime_checkable
class RecordStores(Protocol):
    """Collection of record stores sharing one transaction."""

    @property
    def registry(self) -> TypeRegistry: ...

    def store(self, type_name: str) -> RecordStore: ...
