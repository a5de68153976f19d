"""Tables backing the durable ledger and dead-letter sink."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for the engine's tables."""


class LedgerEntryModel(Base):
    """
    One row per task status transition. Rows are only ever inserted.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    entry_id: Mapped[str] = mapped_column(String(36), unique=True)
    task_id: Mapped[str] = mapped_column(String(36), index=True)
    request_id: Mapped[str] = mapped_column(String, index=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    channel: Mapped[str] = mapped_column(String(16))
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    backoff_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    correlation_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    __table_args__ = (Index("ix_ledger_tenant_recent", "tenant_id", "id"),)


class DeadLetterModel(Base):
    """
    Terminally failed task snapshot with its attempt history as JSON.
    """

    __tablename__ = "dead_letters"

    id: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    task_id: Mapped[str] = mapped_column(String(36), index=True)
    request_id: Mapped[str] = mapped_column(String, index=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    channel: Mapped[str] = mapped_column(String(16))
    idempotency_key: Mapped[str] = mapped_column(String(64))
    template_name: Mapped[str] = mapped_column(String)
    recipients: Mapped[list[str]] = mapped_column(JSON)
    attempts: Mapped[list[dict[str, Any]]] = mapped_column(JSON)
    reason: Mapped[str] = mapped_column(Text)
    failed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    correlation_id: Mapped[str | None] = mapped_column(String, nullable=True)


def as_utc(value: datetime) -> datetime:
    """Backends without timezone support hand back naive UTC values."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
