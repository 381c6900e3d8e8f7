from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from recordsync.domain.errors import RequestError
from recordsync.domain.refresh import RefreshEngine, RelationRefresh

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from typing import Any

    from recordsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from tests.helpers.library import SeededLibrary


def _refresh(
    factory: Callable[[], SqlAlchemyUnitOfWork],
    requested: Mapping[str, Sequence[object]],
    relations: Sequence[RelationRefresh] = (),
) -> dict[str, Any]:
    with factory() as uow:
        return RefreshEngine(uow.stores).refresh(requested, relations=relations).to_payload()


def test_refresh_is_idempotent(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    requested = {"Book": seeded.book_ids[:2], "User": [seeded.user_id]}

    first = _refresh(sqlite_unit_of_work, requested)
    second = _refresh(sqlite_unit_of_work, requested)

    assert first == second


def test_refresh_collapses_duplicate_ids(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    engines = seeded.book_ids[0]

    payload = _refresh(sqlite_unit_of_work, {"Book": [engines, engines, str(engines)]})

    assert [book["id"] for book in payload["models"]["Book"]].count(engines) == 1
    assert payload["relations"]["Book"]["tags"]["models"][engines] == seeded.tag_ids


def test_refresh_reports_missing_ids_as_stale(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    payload = _refresh(sqlite_unit_of_work, {"Author": [seeded.author_ids[1], 999]})

    assert payload["staleModels"] == {"Author": [999]}
    assert 999 not in [author["id"] for author in payload["models"]["Author"]]


def test_refresh_with_no_ids_returns_empty_bucket(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    payload = _refresh(sqlite_unit_of_work, {"Tag": []})

    assert payload == {"models": {"Tag": []}, "relations": {}}


def test_refresh_hides_secret_fields(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    payload = _refresh(sqlite_unit_of_work, {"User": [seeded.user_id]})

    (user,) = payload["models"]["User"]
    assert user["login"] == "ada"
    assert "password" not in user
    assert payload["relations"]["User"]["profile"]["models"] == {seeded.user_id: [1]}


def test_explicit_relation_refresh_reports_membership(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    ada, grace = seeded.author_ids
    engines, notes, _ = seeded.book_ids

    payload = _refresh(
        sqlite_unit_of_work,
        {},
        [RelationRefresh(type_name="Author", relation_name="books", ids=(ada, 404))],
    )

    assert payload["relations"]["Author"]["books"]["models"] == {ada: [engines, notes]}
    assert {engines, notes} <= {book["id"] for book in payload["models"]["Book"]}
    assert payload["staleModels"] == {"Author": [404]}
    assert grace in {author["id"] for author in payload["models"]["Author"]}


def test_explicit_relation_refresh_rejects_unknown_relation(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    with pytest.raises(RequestError, match="publisher"):
        _refresh(
            sqlite_unit_of_work,
            {},
            [RelationRefresh(type_name="Book", relation_name="publisher", ids=(1,))],
        )
