"""Static type and relation descriptors.

Every record type the protocol can touch is declared once, at startup, in a
``TypeRegistry``. The engines never introspect mapped classes for relation
metadata; they read the descriptors declared here.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .errors import RelationConfigurationError, RequestError, UnknownTypeError

type Validator = Callable[[Any], Mapping[str, Sequence[str]]]


class Cardinality(StrEnum):
    ONE = "one"
    MANY = "many"


class RelationKind(StrEnum):
    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    MANY_TO_MANY = "many_to_many"

    @property
    def cardinality(self) -> Cardinality:
        if self in (RelationKind.BELONGS_TO, RelationKind.HAS_ONE):
            return Cardinality.ONE
        return Cardinality.MANY

    @property
    def records_membership(self) -> bool:
        """Whether edges of this kind are reported in the relations map.

        ``belongs_to`` and ``has_many`` memberships are derivable from foreign
        keys the client already holds.
        """
        return self in (RelationKind.HAS_ONE, RelationKind.MANY_TO_MANY)


@dataclass(frozen=True, slots=True)
class RelationDescriptor:
    name: str
    target_type: str
    kind: RelationKind
    attribute: str | None = None

    @property
    def cardinality(self) -> Cardinality:
        return self.kind.cardinality

    @property
    def attribute_name(self) -> str:
        return self.attribute or self.name


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """Declaration of one record type exposed through the protocol."""

    name: str
    entity_cls: type[Any]
    relations: tuple[RelationDescriptor, ...] = ()
    eager: tuple[str, ...] = ()
    validate: Validator | None = None
    hidden: frozenset[str] = field(default_factory=frozenset)
    login_field: str = "login"
    secret_field: str = "password"

    def relation(self, name: str) -> RelationDescriptor:
        for relation in self.relations:
            if relation.name == name:
                return relation
        raise RelationConfigurationError(f"Invalid relation {name!r} on {self.name}")

    def eager_relations(self) -> tuple[RelationDescriptor, ...]:
        return tuple(self.relation(name) for name in self.eager)


class TypeRegistry:
    """Registry mapping type names to descriptors; lookups fail closed."""

    def __init__(self, descriptors: Sequence[TypeDescriptor] = ()) -> None:
        self._descriptors: dict[str, TypeDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: TypeDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise RelationConfigurationError(f"Type {descriptor.name!r} registered twice")
        self._descriptors[descriptor.name] = descriptor

    def get(self, type_name: str) -> TypeDescriptor:
        try:
            return self._descriptors[type_name]
        except KeyError:
            raise UnknownTypeError(type_name) from None

    def relation(self, type_name: str, relation_name: str) -> RelationDescriptor:
        return self.get(type_name).relation(relation_name)

    def requested_relation(self, type_name: str, relation_name: str) -> RelationDescriptor:
        """Look up a relation named by a client; an unknown name is a bad request."""
        try:
            return self.relation(type_name, relation_name)
        except RelationConfigurationError as exc:
            raise RequestError(str(exc)) from exc

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._descriptors

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def validate(self) -> None:
        """Check every eager policy and relation target against the registry."""

        for descriptor in self:
            seen: set[str] = set()
            for relation in descriptor.relations:
                if relation.name in seen:
                    raise RelationConfigurationError(
                        f"Relation {relation.name!r} declared twice on {descriptor.name}"
                    )
                seen.add(relation.name)
                if relation.target_type not in self._descriptors:
                    raise RelationConfigurationError(
                        f"Relation {descriptor.name}.{relation.name} targets unknown type "
                        f"{relation.target_type!r}"
                    )
            descriptor.eager_relations()
