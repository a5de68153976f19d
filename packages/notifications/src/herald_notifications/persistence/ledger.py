"""
SQLAlchemy implementation of the status ledger.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from ..channel import NotificationChannel
from ..delivery import DeliveryStatus
from ..ledger import LedgerEntry
from ..ports.ledger import IStatusLedger
from .models import LedgerEntryModel, as_utc

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger("herald.persistence")


class SQLAlchemyStatusLedger(IStatusLedger):
    """
    Append-only ledger over the ``ledger_entries`` table.

    Each append runs in its own committed transaction, so an entry is
    durable before ``append`` returns; errors propagate to the caller.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def append(self, entry: LedgerEntry) -> None:
        async with self.session_factory() as session, session.begin():
            session.add(
                LedgerEntryModel(
                    entry_id=entry.entry_id,
                    task_id=entry.task_id,
                    request_id=entry.request_id,
                    tenant_id=entry.tenant_id,
                    channel=entry.channel.value,
                    from_status=entry.from_status.value if entry.from_status else None,
                    to_status=entry.to_status.value,
                    attempts=entry.attempts,
                    error=entry.error,
                    backoff_seconds=entry.backoff_seconds,
                    recorded_at=entry.recorded_at,
                    correlation_id=entry.correlation_id,
                )
            )

    async def entries_for_task(self, task_id: str) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.task_id == task_id)
            .order_by(LedgerEntryModel.id)
        )
        return await self._fetch(stmt)

    async def entries_for_request(self, request_id: str) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.request_id == request_id)
            .order_by(LedgerEntryModel.id)
        )
        return await self._fetch(stmt)

    async def entries_for_tenant(self, tenant_id: str, limit: int = 100) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntryModel)
            .where(LedgerEntryModel.tenant_id == tenant_id)
            .order_by(LedgerEntryModel.id.desc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def _fetch(self, stmt: Select[tuple[LedgerEntryModel]]) -> list[LedgerEntry]:
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entry(m) for m in result.scalars().all()]

    @staticmethod
    def _to_entry(m: LedgerEntryModel) -> LedgerEntry:
        return LedgerEntry(
            task_id=m.task_id,
            request_id=m.request_id,
            tenant_id=m.tenant_id,
            channel=NotificationChannel(m.channel),
            from_status=DeliveryStatus(m.from_status) if m.from_status else None,
            to_status=DeliveryStatus(m.to_status),
            attempts=m.attempts,
            error=m.error,
            backoff_seconds=m.backoff_seconds,
            recorded_at=as_utc(m.recorded_at),
            correlation_id=m.correlation_id,
            entry_id=m.entry_id,
        )
