"""Dead-letter sink port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..dead_letter import DeadLetterRecord


@runtime_checkable
class IDeadLetterSink(Protocol):
    """
    Append-only durable store for terminally failed tasks.

    ``record`` must raise on failure; it is never allowed to drop silently.
    Implementations: ``InMemoryDeadLetterSink``, ``SQLAlchemyDeadLetterSink``.
    """

    async def record(self, record: DeadLetterRecord) -> None: ...

    async def list_records(self, tenant_id: str | None = None) -> list[DeadLetterRecord]: ...
