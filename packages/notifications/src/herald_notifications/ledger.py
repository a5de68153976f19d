"""Status ledger entries, status projection and the ledger-first transition recorder."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from herald_core.correlation import get_correlation_id
from herald_core.ports.locking import hold
from herald_core.primitives.locking import ResourceIdentifier

from .channel import NotificationChannel
from .delivery import DeliveryStatus
from .exceptions import LedgerWriteFailure, TaskNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable

    from herald_core.ports.locking import ILockStrategy

    from .ports.ledger import IStatusLedger
    from .ports.repository import ITaskRepository
    from .task import DeliveryTask

logger = logging.getLogger("herald.ledger")
audit_logger = logging.getLogger("herald.audit")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LedgerEntry:
    """One status transition of one delivery task. Append-only."""

    task_id: str
    request_id: str
    tenant_id: str
    channel: NotificationChannel
    from_status: DeliveryStatus | None
    to_status: DeliveryStatus
    attempts: int = 0
    error: str | None = None
    backoff_seconds: float | None = None
    recorded_at: datetime = field(default_factory=_utcnow)
    correlation_id: str | None = None
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_task(
        cls,
        task: DeliveryTask,
        from_status: DeliveryStatus | None,
        *,
        backoff_seconds: float | None = None,
        recorded_at: datetime | None = None,
    ) -> LedgerEntry:
        return cls(
            task_id=task.task_id,
            request_id=task.request_id,
            tenant_id=task.tenant_id,
            channel=task.channel,
            from_status=from_status,
            to_status=task.status,
            attempts=task.attempt_count,
            error=task.last_error,
            backoff_seconds=backoff_seconds,
            recorded_at=recorded_at or _utcnow(),
            correlation_id=task.correlation_id or get_correlation_id(),
        )

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "request_id": self.request_id,
            "tenant_id": self.tenant_id,
            "channel": self.channel.value,
            "from": self.from_status.value if self.from_status else None,
            "to": self.to_status.value,
            "attempts": self.attempts,
            "error": self.error,
            "backoff_seconds": self.backoff_seconds,
            "recorded_at": self.recorded_at.isoformat(),
            "correlation_id": self.correlation_id,
        }


@dataclass(frozen=True)
class ChannelStatus:
    """Per-channel status row returned by status queries."""

    channel: NotificationChannel
    status: DeliveryStatus
    attempts: int
    last_error: str | None
    task_id: str

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> ChannelStatus:
        return cls(
            channel=entry.channel,
            status=entry.to_status,
            attempts=entry.attempts,
            last_error=entry.error,
            task_id=entry.task_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.name,
            "status": self.status.value,
            "attempts": self.attempts,
            "lastError": self.last_error,
            "taskId": self.task_id,
        }


def project_request_status(entries: list[LedgerEntry]) -> list[ChannelStatus]:
    """
    Collapse a request's ledger into one row per channel.

    *entries* are oldest first. A channel can own several tasks when an
    earlier one failed and the request was resubmitted; the row reflects the
    most recently created task's latest entry.
    """
    latest_by_task: dict[str, LedgerEntry] = {}
    created_order: list[str] = []
    for entry in entries:
        if entry.task_id not in latest_by_task:
            created_order.append(entry.task_id)
        latest_by_task[entry.task_id] = entry

    by_channel: dict[NotificationChannel, LedgerEntry] = {}
    for task_id in created_order:
        entry = latest_by_task[task_id]
        by_channel[entry.channel] = entry
    return [ChannelStatus.from_entry(e) for e in by_channel.values()]


class TransitionRecorder:
    """
    Applies task changes with the ledger written first.

    Every status change goes: lock the task, re-read it, apply the change to
    a copy, append the ledger entry, then store the copy. If the ledger
    append fails nothing is stored and :class:`LedgerWriteFailure` is raised,
    so a status query never reports a state the ledger does not hold.
    """

    def __init__(
        self,
        repository: ITaskRepository,
        ledger: IStatusLedger,
        locks: ILockStrategy,
        *,
        lock_timeout: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._ledger = ledger
        self._locks = locks
        self._lock_timeout = lock_timeout
        self._clock = clock

    @property
    def repository(self) -> ITaskRepository:
        return self._repository

    async def record_created(self, task: DeliveryTask) -> None:
        """Ledger the initial status of a new task, then store it."""
        await self._append(LedgerEntry.for_task(task, None, recorded_at=task.created_at))
        await self._repository.put(task)

    async def apply(
        self,
        task_id: str,
        change: Callable[[DeliveryTask], None],
        *,
        backoff_seconds: float | None = None,
    ) -> DeliveryTask:
        """Run *change* on a fresh copy of the task and persist the result.

        Changes that leave the status untouched (cached render, pending
        dead-letter marker) are stored without a ledger entry.
        *backoff_seconds* is only ledgered on a move to RETRY_SCHEDULED.
        """
        resource = ResourceIdentifier("delivery_task", task_id)
        async with hold(self._locks, resource, timeout=self._lock_timeout):
            current = await self._repository.get(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)
            updated = current.model_copy(deep=True)
            change(updated)
            if updated.status is not current.status:
                await self._append(
                    LedgerEntry.for_task(
                        updated,
                        current.status,
                        backoff_seconds=(
                            backoff_seconds
                            if updated.status is DeliveryStatus.RETRY_SCHEDULED
                            else None
                        ),
                        recorded_at=self._clock(),
                    )
                )
            await self._repository.put(updated)
            return updated

    async def _append(self, entry: LedgerEntry) -> None:
        try:
            await self._ledger.append(entry)
        except Exception as e:
            logger.critical(
                "Ledger write failed for task %s (%s -> %s): %s",
                entry.task_id,
                entry.from_status.value if entry.from_status else None,
                entry.to_status.value,
                e,
            )
            raise LedgerWriteFailure(
                f"Could not record transition of task {entry.task_id} to {entry.to_status.value}"
            ) from e
        audit_logger.info(json.dumps(entry.to_audit_dict(), sort_keys=True))
