"""Unit-of-work abstraction wrapping one protocol operation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from .persistence import RecordStores


@runtime_checkable
class SyncUnitOfWork(Protocol):
    """Transaction boundary around the record stores of one request."""

    @property
    def stores(self) -> RecordStores: ...

    def __enter__(self) -> SyncUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
