"""
SQLAlchemy implementation of the dead-letter sink.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import TypeAdapter
from sqlalchemy import select

from ..channel import NotificationChannel
from ..dead_letter import DeadLetterRecord
from ..delivery import DeliveryAttempt
from ..ports.sink import IDeadLetterSink
from .models import DeadLetterModel, as_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger("herald.persistence")

_attempts = TypeAdapter(list[DeliveryAttempt])


class SQLAlchemyDeadLetterSink(IDeadLetterSink):
    """
    Dead-letter store over the ``dead_letters`` table.

    ``record`` commits before returning and never swallows errors; the
    handler turns them into ``DeadLetterWriteFailure``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def record(self, record: DeadLetterRecord) -> None:
        async with self.session_factory() as session, session.begin():
            session.add(
                DeadLetterModel(
                    task_id=record.task_id,
                    request_id=record.request_id,
                    tenant_id=record.tenant_id,
                    channel=record.channel.value,
                    idempotency_key=record.idempotency_key,
                    template_name=record.template_name,
                    recipients=list(record.recipients),
                    attempts=_attempts.dump_python(list(record.attempts), mode="json"),
                    reason=record.reason,
                    failed_at=record.failed_at,
                    correlation_id=record.correlation_id,
                )
            )
        logger.debug("Stored dead letter for task %s", record.task_id)

    async def list_records(self, tenant_id: str | None = None) -> list[DeadLetterRecord]:
        stmt = select(DeadLetterModel).order_by(DeadLetterModel.id)
        if tenant_id is not None:
            stmt = stmt.where(DeadLetterModel.tenant_id == tenant_id)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [
                DeadLetterRecord(
                    task_id=m.task_id,
                    request_id=m.request_id,
                    tenant_id=m.tenant_id,
                    channel=NotificationChannel(m.channel),
                    idempotency_key=m.idempotency_key,
                    template_name=m.template_name,
                    recipients=tuple(m.recipients),
                    attempts=tuple(_attempts.validate_python(m.attempts)),
                    reason=m.reason,
                    failed_at=as_utc(m.failed_at),
                    correlation_id=m.correlation_id,
                )
                for m in result.scalars().all()
            ]
