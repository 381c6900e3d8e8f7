from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from recordsync.domain.errors import (
    RecordValidationError,
    RelationConfigurationError,
    RequestError,
)
from recordsync.domain.registry import RelationDescriptor, RelationKind
from tests.helpers.library import Book, Tag

if TYPE_CHECKING:
    from collections.abc import Callable

    from recordsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from tests.helpers.library import SeededLibrary


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(3, 3), ("3", 3)],
)
def test_coerce_id_matches_primary_key_type(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    raw: object,
    expected: int,
) -> None:
    with sqlite_unit_of_work() as uow:
        assert uow.stores.store("Book").coerce_id(raw) == expected


@pytest.mark.parametrize("raw", ["three", None, True, 1.5])
def test_coerce_id_rejects_invalid_values(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    raw: object,
) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(RequestError):
        uow.stores.store("Book").coerce_id(raw)


@pytest.mark.parametrize(
    ("type_name", "attribute", "expected"),
    [
        ("Document", "file", True),
        ("Document", "id", False),
        ("Document", "nope", False),
        ("User", "password", False),
        ("Book", "tags", False),
    ],
)
def test_accepts_attribute_only_for_writable_columns(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    type_name: str,
    attribute: str,
    expected: bool,
) -> None:
    with sqlite_unit_of_work() as uow:
        assert uow.stores.store(type_name).accepts_attribute(attribute) is expected


def test_find_by_ids_orders_by_primary_key(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Book")
        records = store.find_by_ids(list(reversed(seeded.book_ids)))
        assert [store.record_id(record) for record in records] == seeded.book_ids


def test_find_by_filter_supports_null_and_lists(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Book")
        by_author = store.find_by_filter({"author_id": seeded.author_ids, "order": "-title"})
        no_cover = store.find_by_filter({"cover": None})

        assert [book.title for book in by_author] == ["Notes", "Engines", "Compilers"]
        assert len(no_cover) == len(seeded.book_ids)


def test_hidden_fields_cannot_be_searched(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with sqlite_unit_of_work() as uow, pytest.raises(RequestError, match="password"):
        uow.stores.store("User").search_ids({"password": "s3cret"})


def test_create_ignores_unknown_attributes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Tag")
        record = store.create({"name": "poetry", "id": 99, "colour": "red"})

        assert store.serialize(record) == {"id": store.record_id(record), "name": "poetry"}
        assert store.record_id(record) != 99


def test_integrity_errors_become_validation_errors(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Tag")
        with pytest.raises(RecordValidationError) as excinfo:
            store.create({"name": "classic"})

    assert excinfo.value.type_name == "Tag"
    assert list(excinfo.value.errors) == ["base"]


def test_delete_of_missing_record_is_a_no_op(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.stores.store("Tag").delete(404)
        assert len(uow.session.scalars(select(Tag)).all()) == len(seeded.tag_ids)


def test_get_related_batches_and_sorts_targets(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    engines, notes, compilers = seeded.book_ids
    classic, computing = seeded.tag_ids
    relation = RelationDescriptor("tags", "Tag", RelationKind.MANY_TO_MANY)

    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Book")
        books = store.find_by_ids(seeded.book_ids)
        pairs = [(source, target.id) for source, target in store.get_related(books, relation)]

    assert pairs == [(engines, classic), (engines, computing), (compilers, computing)]
    assert notes not in {source for source, _ in pairs}


def test_set_related_on_single_valued_relation(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    relation = RelationDescriptor("author", "Author", RelationKind.BELONGS_TO)
    ada, grace = seeded.author_ids

    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Book")
        (book,) = store.find_by_ids([seeded.book_ids[0]])
        authors = uow.stores.store("Author").find_by_ids([ada, grace])

        with pytest.raises(RequestError, match="single record"):
            store.set_related(book, relation, authors)

        store.set_related(book, relation, authors[1:])
        assert book.author_id == grace
        store.set_related(book, relation, [])
        assert uow.session.get_one(Book, seeded.book_ids[0]).author_id is None


def test_unmapped_relation_attribute_is_a_configuration_error(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    relation = RelationDescriptor("publisher", "Author", RelationKind.BELONGS_TO)
    with sqlite_unit_of_work() as uow:
        store = uow.stores.store("Book")
        books = store.find_by_ids(seeded.book_ids[:1])
        with pytest.raises(RelationConfigurationError, match="publisher"):
            store.get_related(books, relation)
