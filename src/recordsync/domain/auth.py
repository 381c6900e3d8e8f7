"""Session gate: credential verification feeding the refresh engine."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .refresh import RefreshEngine

if TYPE_CHECKING:
    from .envelope import Envelope, RecordId
    from .ports.persistence import RecordStores
    from .ports.sessions import SessionStore

log = logging.getLogger(__name__)


def credential_digest(token: str, secret: str) -> str:
    """Digest the client's one-time token together with the stored secret.

    The client computes the same digest locally, so the secret never travels.
    """
    return hashlib.sha1(f"{token}{secret}".encode()).hexdigest()  # noqa: S324


@dataclass(frozen=True, slots=True)
class LoginAttempt:
    type_name: str
    login: str
    token: str
    digest: str


@dataclass(slots=True)
class AuthResult:
    type_name: str
    record_id: RecordId
    envelope: Envelope

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "authModel": {"railsClass": self.type_name, "id": self.record_id},
        }
        payload.update(self.envelope.to_payload())
        return payload


class SessionGate:
    def __init__(
        self,
        stores: RecordStores,
        sessions: SessionStore,
        *,
        refresh: RefreshEngine | None = None,
    ) -> None:
        self.stores = stores
        self.registry = stores.registry
        self.sessions = sessions
        self.refresh_engine = refresh or RefreshEngine(stores)

    def authenticate(self, attempt: LoginAttempt) -> AuthResult | None:
        """Return the authenticated record, or ``None`` when the login is declined."""

        descriptor = self.registry.get(attempt.type_name)
        store = self.stores.store(attempt.type_name)
        candidates = store.find_by_filter({descriptor.login_field: attempt.login})
        if not candidates:
            log.info("Login declined for %s %r: unknown login", attempt.type_name, attempt.login)
            return None

        record = candidates[0]
        secret = getattr(record, descriptor.secret_field, None)
        if secret is None or not hmac.compare_digest(
            credential_digest(attempt.token, str(secret)).encode(), attempt.digest.encode()
        ):
            log.info("Login declined for %s %r: digest mismatch", attempt.type_name, attempt.login)
            return None

        record_id = store.record_id(record)
        envelope = self.refresh_engine.refresh({attempt.type_name: [record_id]})
        self.sessions.establish(attempt.type_name, record_id)
        log.info("Authenticated %s %s", attempt.type_name, record_id)
        return AuthResult(type_name=attempt.type_name, record_id=record_id, envelope=envelope)

    def logout(self) -> None:
        self.sessions.clear()
