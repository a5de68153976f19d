"""InMemoryStatusLedger — list-backed append-only ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports.ledger import IStatusLedger

if TYPE_CHECKING:
    from ..ledger import LedgerEntry


class InMemoryStatusLedger(IStatusLedger):
    def __init__(self) -> None:
        self.entries: list[LedgerEntry] = []

    async def append(self, entry: LedgerEntry) -> None:
        self.entries.append(entry)

    async def entries_for_task(self, task_id: str) -> list[LedgerEntry]:
        return [e for e in self.entries if e.task_id == task_id]

    async def entries_for_request(self, request_id: str) -> list[LedgerEntry]:
        return [e for e in self.entries if e.request_id == request_id]

    async def entries_for_tenant(self, tenant_id: str, limit: int = 100) -> list[LedgerEntry]:
        matching = [e for e in reversed(self.entries) if e.tenant_id == tenant_id]
        return matching[:limit]
