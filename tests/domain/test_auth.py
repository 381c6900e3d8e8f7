from __future__ import annotations

from typing import TYPE_CHECKING

from recordsync.adapters.sessions import MappingSessionStore
from recordsync.domain.auth import LoginAttempt, SessionGate, credential_digest

if TYPE_CHECKING:
    from collections.abc import Callable

    from recordsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from tests.helpers.library import SeededLibrary


def _attempt(login: str, password: str, *, token: str = "nonce") -> LoginAttempt:
    return LoginAttempt(
        type_name="User",
        login=login,
        token=token,
        digest=credential_digest(token, password),
    )


def test_credential_digest_is_sha1_of_token_and_secret() -> None:
    assert credential_digest("abc", "") == "a9993e364706816aba3e25717850c26c9cd0d89d"


def test_authenticate_establishes_session_and_refreshes_own_record(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    sessions = MappingSessionStore()

    with sqlite_unit_of_work() as uow:
        result = SessionGate(uow.stores, sessions).authenticate(_attempt("ada", "s3cret"))

    assert result is not None
    payload = result.to_payload()
    assert payload["authModel"] == {"railsClass": "User", "id": seeded.user_id}
    assert [user["id"] for user in payload["models"]["User"]] == [seeded.user_id]
    assert sessions.current() == ("User", seeded.user_id)


def test_wrong_digest_declines_without_session(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    sessions = MappingSessionStore()

    with sqlite_unit_of_work() as uow:
        result = SessionGate(uow.stores, sessions).authenticate(_attempt("ada", "guess"))

    assert result is None
    assert sessions.current() is None


def test_unknown_login_declines(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    sessions = MappingSessionStore()

    with sqlite_unit_of_work() as uow:
        result = SessionGate(uow.stores, sessions).authenticate(_attempt("grace", "s3cret"))

    assert result is None


def test_logout_clears_the_session(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    sessions = MappingSessionStore({"current_user": 7, "current_user_type": "User"})

    with sqlite_unit_of_work() as uow:
        SessionGate(uow.stores, sessions).logout()

    assert sessions.current() is None
    assert sessions.data == {}


def test_non_ascii_digest_declines(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    seeded: SeededLibrary,
) -> None:
    sessions = MappingSessionStore()
    attempt = LoginAttempt(type_name="User", login="ada", token="nonce", digest="hé")

    with sqlite_unit_of_work() as uow:
        result = SessionGate(uow.stores, sessions).authenticate(attempt)

    assert result is None
    assert sessions.current() is None
