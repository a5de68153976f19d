"""InMemoryDeadLetterSink — list-backed dead-letter store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports.sink import IDeadLetterSink

if TYPE_CHECKING:
    from ..dead_letter import DeadLetterRecord


class InMemoryDeadLetterSink(IDeadLetterSink):
    def __init__(self) -> None:
        self.records: list[DeadLetterRecord] = []

    async def record(self, record: DeadLetterRecord) -> None:
        self.records.append(record)

    async def list_records(self, tenant_id: str | None = None) -> list[DeadLetterRecord]:
        if tenant_id is None:
            return list(self.records)
        return [r for r in self.records if r.tenant_id == tenant_id]

    def for_task(self, task_id: str) -> list[DeadLetterRecord]:
        return [r for r in self.records if r.task_id == task_id]
