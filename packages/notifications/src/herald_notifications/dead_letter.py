"""DeadLetterHandler — durable sink for tasks that will not be retried."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .exceptions import DeadLetterWriteFailure, LedgerWriteFailure, TaskNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .channel import NotificationChannel
    from .delivery import DeliveryAttempt
    from .ledger import TransitionRecorder
    from .ports.sink import IDeadLetterSink
    from .task import DeliveryTask

logger = logging.getLogger("herald.dead_letter")


@dataclass(frozen=True)
class DeadLetterRecord:
    """Snapshot of a terminally failed task with its complete attempt history."""

    task_id: str
    request_id: str
    tenant_id: str
    channel: NotificationChannel
    idempotency_key: str
    template_name: str
    recipients: tuple[str, ...]
    attempts: tuple[DeliveryAttempt, ...]
    reason: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @classmethod
    def from_task(
        cls,
        task: DeliveryTask,
        reason: str,
        failed_at: datetime | None = None,
    ) -> DeadLetterRecord:
        return cls(
            task_id=task.task_id,
            request_id=task.request_id,
            tenant_id=task.tenant_id,
            channel=task.channel,
            idempotency_key=task.idempotency_key,
            template_name=task.template_name,
            recipients=tuple(task.recipients),
            attempts=tuple(task.attempts),
            reason=reason,
            failed_at=failed_at or datetime.now(timezone.utc),
            correlation_id=task.correlation_id,
        )


class DeadLetterHandler:
    """Routes terminally failed tasks to the dead-letter sink, then marks them FAILED.

    The sink write happens first. When it fails the task keeps its status,
    the reason is stored as ``pending_dead_letter`` together with the final
    attempt, ``on_fatal`` is awaited and :class:`DeadLetterWriteFailure` is
    raised so the caller can requeue. When the sink write succeeds but the
    FAILED ledger entry cannot be appended, the task is marked
    ``dead_letter_recorded`` as well and :class:`LedgerWriteFailure`
    propagates. A later :meth:`retry_pending` repeats only the step that
    failed; the provider is never called again for such a task.
    """

    def __init__(
        self,
        sink: IDeadLetterSink,
        recorder: TransitionRecorder,
        *,
        on_fatal: (
            Callable[[DeliveryTask, BaseException], Coroutine[Any, Any, None]] | None
        ) = None,
    ) -> None:
        self._sink = sink
        self._recorder = recorder
        self._on_fatal = on_fatal

    async def dead_letter(
        self,
        task_id: str,
        reason: str,
        attempt: DeliveryAttempt | None = None,
    ) -> DeliveryTask:
        """Record *task_id* in the sink with *attempt* appended, then mark it FAILED."""
        task = await self._recorder.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        snapshot = task.model_copy(deep=True)
        if attempt is not None:
            snapshot.record_attempt(attempt)

        try:
            await self._sink.record(DeadLetterRecord.from_task(snapshot, reason))
        except Exception as e:
            await self._hold_for_retry(snapshot, reason, attempt, e)
            raise DeadLetterWriteFailure(
                f"Could not dead-letter task {task_id}: {e}"
            ) from e

        return await self._mark_failed(task_id, reason, attempt)

    async def retry_pending(self, task_id: str) -> DeliveryTask:
        """Finish a dead-lettering that failed part way."""
        task = await self._recorder.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.pending_dead_letter is None:
            return task
        if task.dead_letter_recorded:
            return await self._mark_failed(task_id, task.pending_dead_letter)
        return await self.dead_letter(task_id, task.pending_dead_letter)

    async def _mark_failed(
        self,
        task_id: str,
        reason: str,
        attempt: DeliveryAttempt | None = None,
    ) -> DeliveryTask:
        def _fail(t: DeliveryTask) -> None:
            if attempt is not None:
                t.record_attempt(attempt)
            t.mark_failed(reason)

        try:
            failed = await self._recorder.apply(task_id, _fail)
        except LedgerWriteFailure:
            logger.critical(
                "Task %s is in the dead-letter sink but FAILED is not ledgered; held for retry",
                task_id,
            )

            def _recorded(t: DeliveryTask) -> None:
                if attempt is not None:
                    t.record_attempt(attempt)
                t.pending_dead_letter = reason
                t.dead_letter_recorded = True

            await self._recorder.apply(task_id, _recorded)
            raise

        logger.warning(
            "Dead-lettered task %s (%s) after %d attempts: %s",
            task_id,
            failed.channel.value,
            failed.attempt_count,
            reason,
        )
        return failed

    async def _hold_for_retry(
        self,
        snapshot: DeliveryTask,
        reason: str,
        attempt: DeliveryAttempt | None,
        error: Exception,
    ) -> None:
        logger.critical(
            "Dead-letter sink write failed for task %s; task held for retry: %s",
            snapshot.task_id,
            error,
        )

        def _hold(t: DeliveryTask) -> None:
            if attempt is not None:
                t.record_attempt(attempt)
            t.pending_dead_letter = reason

        await self._recorder.apply(snapshot.task_id, _hold)
        if self._on_fatal is not None:
            try:
                await self._on_fatal(snapshot, error)
            except Exception:
                logger.exception("on_fatal callback failed for task %s", snapshot.task_id)
