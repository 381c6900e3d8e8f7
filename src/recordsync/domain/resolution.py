"""Eager relation resolution.

Starting from already fetched root records, the resolver follows every
relation named in a type's eager policy, fetches each reachable record once
and records relation membership into the envelope.

Termination on cyclic policies is guaranteed by an expansion memo keyed by
``(type, relation)`` holding the source ids already expanded through that
relation: a record is never expanded twice through the same relation, and the
set of records is finite. Traversal uses an explicit work queue so long
relation chains do not grow the Python stack.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .envelope import Envelope, RecordId
    from .ports.persistence import RecordStores

log = logging.getLogger(__name__)

type ExpansionMemo = dict[tuple[str, str], set[RecordId]]


def new_expansion_memo() -> ExpansionMemo:
    return {}


class EagerResolver:
    """Resolve eager policies for fetched records into an ``Envelope``."""

    def __init__(self, stores: RecordStores) -> None:
        self.stores = stores
        self.registry = stores.registry

    def resolve(
        self,
        type_name: str,
        records: Sequence[Any],
        envelope: Envelope,
        *,
        memo: ExpansionMemo | None = None,
    ) -> None:
        """Expand ``records`` of ``type_name`` following declared eager relations.

        Pass the same ``memo`` for every root set of one top-level request so
        expansions are shared between them.
        """

        expanded = memo if memo is not None else new_expansion_memo()
        queue: deque[tuple[str, Sequence[Any]]] = deque([(type_name, records)])
        while queue:
            current_type, current_records = queue.popleft()
            queue.extend(self._expand(current_type, current_records, envelope, expanded))

    def _expand(
        self,
        type_name: str,
        records: Sequence[Any],
        envelope: Envelope,
        expanded: ExpansionMemo,
    ) -> list[tuple[str, list[Any]]]:
        descriptor = self.registry.get(type_name)
        if not descriptor.eager or not records:
            return []

        store = self.stores.store(type_name)
        follow_ups: list[tuple[str, list[Any]]] = []
        for relation in descriptor.eager_relations():
            seen = expanded.setdefault((type_name, relation.name), set())
            sources: list[Any] = []
            for record in records:
                record_id = store.record_id(record)
                if record_id in seen:
                    continue
                seen.add(record_id)
                sources.append(record)
            if not sources:
                continue

            target_store = self.stores.store(relation.target_type)
            bucket = None
            if relation.kind.records_membership:
                bucket = envelope.relation_bucket(
                    type_name, relation.name, relation.attribute_name
                )
                for record in sources:
                    bucket.touch(store.record_id(record))

            fresh: list[Any] = []
            pairs = store.get_related(sources, relation)
            for source_id, target in pairs:
                target_id = target_store.record_id(target)
                if not envelope.has_record(relation.target_type, target_id):
                    payload = target_store.serialize(target)
                    envelope.add_record(relation.target_type, target_id, payload)
                    fresh.append(target)
                if bucket is not None:
                    bucket.add_edge(source_id, target_id)

            log.debug(
                "Expanded %s.%s for %d records: %d edges, %d new %s records",
                type_name,
                relation.name,
                len(sources),
                len(pairs),
                len(fresh),
                relation.target_type,
            )
            if fresh:
                follow_ups.append((relation.target_type, fresh))
        return follow_ups
