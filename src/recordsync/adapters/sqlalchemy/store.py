"""Record stores backed by SQLAlchemy sessions.

A store works against any mapped class, imperatively mapped dataclasses as
well as declarative models. Relation metadata comes from the static
descriptors; the mapper is only consulted for columns, the primary key and
whether a relationship attribute holds a collection.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from recordsync.domain.errors import (
    RecordValidationError,
    RelationConfigurationError,
    RequestError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from sqlalchemy import Select
    from sqlalchemy.orm import ColumnProperty, Mapper, RelationshipProperty, Session
    from sqlalchemy.sql.elements import ColumnElement

    from recordsync.domain.envelope import RecordId, RecordPayload
    from recordsync.domain.registry import RelationDescriptor, TypeDescriptor

type SearchHook = Callable[[Select[Any], Mapping[str, object]], Select[Any]]

log = logging.getLogger(__name__)

ORDER_KEY = "order"
_BATCH_SIZE = 500


def _jsonable(value: object) -> object:
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, uuid.UUID | Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _identity_sort_key(record: object) -> tuple[Any, ...]:
    identity = inspect(record).identity
    return tuple(identity) if identity is not None else ()


def _chunks(ids: Sequence[RecordId]) -> list[Sequence[RecordId]]:
    return [ids[i : i + _BATCH_SIZE] for i in range(0, len(ids), _BATCH_SIZE)]


class SqlAlchemyRecordStore:
    def __init__(
        self,
        session: Session,
        descriptor: TypeDescriptor,
        *,
        search_hook: SearchHook | None = None,
    ) -> None:
        self.session = session
        self._descriptor = descriptor
        self._entity_cls = descriptor.entity_cls
        self._search_hook = search_hook

        mapper: Mapper[Any] = inspect(self._entity_cls)
        if len(mapper.primary_key) != 1:
            raise RelationConfigurationError(
                f"{descriptor.name} must have exactly one primary key column"
            )
        self._mapper = mapper
        pk_column = mapper.primary_key[0]
        self._pk_key = mapper.get_property_by_column(pk_column).key
        try:
            self._pk_type: type[Any] | None = pk_column.type.python_type
        except NotImplementedError:
            self._pk_type = None
        self._columns: dict[str, ColumnProperty[Any]] = {
            prop.key: prop for prop in mapper.column_attrs
        }

    @property
    def descriptor(self) -> TypeDescriptor:
        return self._descriptor

    @property
    def type_name(self) -> str:
        return self._descriptor.name

    # Identity and serialization ------------------------------------------------

    def coerce_id(self, raw: object) -> RecordId:
        if isinstance(raw, bool) or not isinstance(raw, int | str):
            raise RequestError(f"Invalid id {raw!r} for {self.type_name}")
        if self._pk_type is int and isinstance(raw, str):
            try:
                return int(raw)
            except ValueError:
                raise RequestError(f"Invalid id {raw!r} for {self.type_name}") from None
        if self._pk_type is str:
            return str(raw)
        return raw

    def record_id(self, record: Any) -> RecordId:
        return getattr(record, self._pk_key)

    def accepts_attribute(self, name: str) -> bool:
        """Whether ``name`` is a writable, serialized column."""
        return (
            name in self._columns and name != self._pk_key and name not in self._descriptor.hidden
        )

    def serialize(self, record: Any) -> RecordPayload:
        return {
            key: _jsonable(getattr(record, key))
            for key in self._columns
            if key not in self._descriptor.hidden
        }

    # Reads ---------------------------------------------------------------------

    def find_by_ids(self, ids: Sequence[RecordId]) -> list[Any]:
        pk = self._pk_attribute()
        chunks = _chunks(ids)
        records: list[Any] = []
        for chunk in chunks:
            stmt = select(self._entity_cls).where(pk.in_(chunk)).order_by(pk)
            records.extend(self.session.scalars(stmt))
        if len(chunks) > 1:
            records.sort(key=self.record_id)
        return records

    def find_by_filter(self, criteria: Mapping[str, object]) -> list[Any]:
        return list(self.session.scalars(self._filtered(criteria)).unique())

    def search_ids(self, criteria: Mapping[str, object]) -> list[RecordId]:
        if self._search_hook is not None:
            stmt = self._search_hook(select(self._entity_cls), criteria)
        else:
            stmt = self._filtered(criteria)
        return [self.record_id(record) for record in self.session.scalars(stmt).unique()]

    def _filtered(self, criteria: Mapping[str, object]) -> Select[Any]:
        stmt = select(self._entity_cls)
        for key, value in criteria.items():
            if key == ORDER_KEY:
                continue
            column = self._column(key)
            if isinstance(value, list | tuple):
                stmt = stmt.where(column.in_(value))
            elif value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == value)
        return stmt.order_by(*self._ordering(criteria.get(ORDER_KEY)))

    def _ordering(self, order: object) -> list[ColumnElement[Any]]:
        if order is None:
            names: list[str] = []
        elif isinstance(order, str):
            names = [order]
        elif isinstance(order, list | tuple) and all(isinstance(name, str) for name in order):
            names = [str(name) for name in order]
        else:
            raise RequestError(f"Invalid order {order!r} for {self.type_name}")

        clauses: list[ColumnElement[Any]] = []
        for name in names:
            descending = name.startswith("-")
            column = self._column(name.lstrip("-"))
            clauses.append(column.desc() if descending else column.asc())
        clauses.append(self._pk_attribute().asc())
        return clauses

    def _column(self, key: str) -> Any:
        if key not in self._columns or key in self._descriptor.hidden:
            raise RequestError(f"Unknown search field {key!r} for {self.type_name}")
        return getattr(self._entity_cls, key)

    def _pk_attribute(self) -> Any:
        return getattr(self._entity_cls, self._pk_key)

    # Writes --------------------------------------------------------------------

    def create(self, attributes: Mapping[str, object]) -> Any:
        record = self._entity_cls(**self._assignable(attributes))
        self._validate(record)
        self.session.add(record)
        self._flush(record)
        return record

    def update(self, record: Any, attributes: Mapping[str, object]) -> None:
        for key, value in self._assignable(attributes).items():
            setattr(record, key, value)
        self._validate(record)
        self._flush(record)

    def delete(self, record_id: RecordId) -> None:
        record = self.session.get(self._entity_cls, record_id)
        if record is None:
            log.debug("Skipping delete of missing %s %s", self.type_name, record_id)
            return
        self.session.delete(record)
        self._flush(record)

    def _assignable(self, attributes: Mapping[str, object]) -> dict[str, object]:
        values: dict[str, object] = {}
        for key, value in attributes.items():
            if key == self._pk_key or key not in self._columns:
                continue
            values[key] = value
        return values

    def _validate(self, record: Any) -> None:
        if self._descriptor.validate is None:
            return
        errors = {
            field: list(messages)
            for field, messages in self._descriptor.validate(record).items()
            if messages
        }
        if errors:
            with self.session.no_autoflush:
                snapshot = self.serialize(record)
            raise RecordValidationError(self.type_name, snapshot, errors)

    def _flush(self, record: Any) -> None:
        with self.session.no_autoflush:
            snapshot = self.serialize(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise RecordValidationError(
                self.type_name, snapshot, {"base": [str(exc.orig)]}
            ) from exc

    # Relations -----------------------------------------------------------------

    def get_related(
        self, records: Sequence[Any], relation: RelationDescriptor
    ) -> list[tuple[RecordId, Any]]:
        if not records:
            return []
        prop = self._relationship(relation)
        attribute = getattr(self._entity_cls, prop.key)
        ids = [self.record_id(record) for record in records]
        for chunk in _chunks(ids):
            stmt = select(self._entity_cls).where(self._pk_attribute().in_(chunk))
            self.session.scalars(stmt.options(selectinload(attribute))).all()

        pairs: list[tuple[RecordId, Any]] = []
        for record in records:
            value = getattr(record, prop.key)
            if value is None:
                continue
            targets = list(value) if prop.uselist else [value]
            targets.sort(key=_identity_sort_key)
            source_id = self.record_id(record)
            pairs.extend((source_id, target) for target in targets)
        return pairs

    def set_related(
        self, record: Any, relation: RelationDescriptor, targets: Sequence[Any]
    ) -> None:
        prop = self._relationship(relation)
        if prop.uselist:
            setattr(record, prop.key, list(targets))
        else:
            if len(targets) > 1:
                raise RequestError(
                    f"{self.type_name}.{relation.name} holds a single record, got {len(targets)}"
                )
            setattr(record, prop.key, targets[0] if targets else None)
        self._flush(record)

    def add_related(
        self, record: Any, relation: RelationDescriptor, targets: Sequence[Any]
    ) -> None:
        prop = self._relationship(relation)
        if not prop.uselist:
            self.set_related(record, relation, targets)
            return
        collection = getattr(record, prop.key)
        for target in targets:
            if target not in collection:
                collection.append(target)
        self._flush(record)

    def _relationship(self, relation: RelationDescriptor) -> RelationshipProperty[Any]:
        prop = self._mapper.relationships.get(relation.attribute_name)
        if prop is None:
            raise RelationConfigurationError(
                f"Invalid relation {relation.name!r} on {self.type_name}: "
                f"no mapped relationship {relation.attribute_name!r}"
            )
        return prop
