"""Status ledger port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..ledger import LedgerEntry


@runtime_checkable
class IStatusLedger(Protocol):
    """
    Append-only store of task status transitions; source of truth for status queries.

    Implementations: ``InMemoryStatusLedger``, ``SQLAlchemyStatusLedger``.
    """

    async def append(self, entry: LedgerEntry) -> None:
        """Durably record one transition. Must raise on failure."""
        ...

    async def entries_for_task(self, task_id: str) -> list[LedgerEntry]:
        """Entries of one task, oldest first."""
        ...

    async def entries_for_request(self, request_id: str) -> list[LedgerEntry]:
        """Entries of every task of a request, oldest first."""
        ...

    async def entries_for_tenant(self, tenant_id: str, limit: int = 100) -> list[LedgerEntry]:
        """Most recent entries of a tenant, newest first."""
        ...
