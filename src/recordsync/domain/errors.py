"""Business and configuration errors raised by the sync engines.

Business errors (``SyncError`` subclasses) abort the enclosing unit of work and
are turned into an ``{"errors": [...]}`` response by the service layer.
Configuration errors signal a deployment bug and are never converted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from recordsync.config.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class SyncError(Exception):
    """Base class for errors reported back to the client."""

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"message": str(self)}]


class RequestError(SyncError):
    """The request payload cannot be processed as sent."""


class NotAuthenticatedError(SyncError):
    """The operation needs an established session."""

    def __init__(self) -> None:
        super().__init__("Not authenticated")


class RecordValidationError(SyncError):
    """A record failed validation while being created or updated."""

    def __init__(
        self,
        type_name: str,
        record: Mapping[str, Any],
        errors: Mapping[str, Sequence[str]],
    ) -> None:
        self.type_name = type_name
        self.record = dict(record)
        self.errors = {field: list(messages) for field, messages in errors.items()}
        super().__init__(f"Validation failed for {type_name}: {self._summary()}")

    def _summary(self) -> str:
        return "; ".join(
            f"{field} {', '.join(messages)}" for field, messages in self.errors.items()
        )

    def to_payload(self) -> list[dict[str, Any]]:
        return [{"railsClass": self.type_name, "model": self.record, "errors": self.errors}]


class RelationConfigurationError(ConfigurationError):
    """A declared relation or eager policy does not match the registry."""


class UnknownTypeError(RelationConfigurationError):
    """A type name is not present in the static registry."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Unknown record type {type_name!r}")
