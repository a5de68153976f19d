"""RetryPolicy and RetryScheduler — backoff, re-enqueue or escalate."""

from __future__ import annotations

import dataclasses
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .delivery import DeliveryStatus, OutcomeKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from .dead_letter import DeadLetterHandler
    from .delivery import DeliveryAttempt
    from .ledger import TransitionRecorder
    from .queue import ChannelQueues
    from .task import DeliveryTask

logger = logging.getLogger("herald.retry")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetryPolicy:
    """Bounded retry with capped exponential backoff and additive jitter."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: float = 0.5,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_attempts: Maximum number of delivery attempts (including first).
            base_delay: Delay in seconds after the first failed attempt.
            max_delay: Cap on the exponential part of the delay.
            jitter: Upper bound of the random window added to every delay.
            rng: ``uniform(a, b)`` source for the jitter.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0 or jitter < 0:
            raise ValueError("base_delay, max_delay and jitter must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._rng = rng

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt is allowed after *attempt* (1-based)."""
        return 1 <= attempt < self.max_attempts

    def base_delay_for_attempt(self, attempt: int) -> float:
        """Backoff without jitter: ``min(max_delay, base_delay * 2^(attempt-1))``."""
        if attempt < 1:
            return 0.0
        # Clamp the exponent so very large attempt numbers cannot overflow.
        exponent = min(attempt - 1, 62)
        return float(min(self.max_delay, self.base_delay * (2**exponent)))

    def delay_for_attempt(self, attempt: int) -> float:
        """Backoff for the given 1-based attempt, plus jitter in ``[0, jitter]``."""
        delay = self.base_delay_for_attempt(attempt)
        if self.jitter > 0:
            delay += self._rng(0.0, self.jitter)
        return max(0.0, delay)


class RetryScheduler:
    """
    Turns a finished attempt into the task's next state.

    - ``Delivered``: SENT.
    - ``TransientFailure``: CANCELLED if a cancel was requested while the task
      was claimed; RETRY_SCHEDULED and re-enqueued after the backoff while
      attempts remain; otherwise dead-lettered.
    - ``PermanentFailure``: dead-lettered immediately.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        recorder: TransitionRecorder,
        dead_letters: DeadLetterHandler,
        queues: ChannelQueues,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._policy = policy
        self._recorder = recorder
        self._dead_letters = dead_letters
        self._queues = queues
        self._clock = clock

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def report(self, task: DeliveryTask, attempt: DeliveryAttempt) -> DeliveryTask:
        if attempt.outcome is OutcomeKind.DELIVERED:

            def _sent(t: DeliveryTask) -> None:
                t.record_attempt(attempt)
                t.mark_sent()

            return await self._recorder.apply(task.task_id, _sent)

        if attempt.outcome is OutcomeKind.PERMANENT_FAILURE:
            reason = f"Permanent failure: {attempt.error or 'provider rejected delivery'}"
            return await self._dead_letters.dead_letter(task.task_id, reason, attempt)

        if not self._policy.should_retry(attempt.number):
            current = await self._recorder.repository.get(task.task_id)
            if current is None or not current.cancel_requested:
                reason = (
                    f"Retries exhausted after {attempt.number} attempts: "
                    f"{attempt.error or 'transient failure'}"
                )
                return await self._dead_letters.dead_letter(task.task_id, reason, attempt)

        delay = self._policy.delay_for_attempt(attempt.number)
        due = self._clock() + timedelta(seconds=delay)
        with_backoff = dataclasses.replace(attempt, backoff_seconds=delay)

        def _next(t: DeliveryTask) -> None:
            # cancel_requested is read under the task lock.
            if t.cancel_requested:
                t.record_attempt(attempt)
                t.cancel("Cancelled during delivery")
            else:
                t.record_attempt(with_backoff)
                t.schedule_retry(due)

        updated = await self._recorder.apply(task.task_id, _next, backoff_seconds=delay)
        if updated.status is DeliveryStatus.CANCELLED:
            logger.info("Task %s cancelled after transient failure", task.task_id)
            return updated

        self._queues[updated.channel].put(updated.task_id, due)
        logger.info(
            "Task %s attempt %d/%d failed transiently; retry in %.2fs",
            task.task_id,
            attempt.number,
            self._policy.max_attempts,
            delay,
        )
        return updated
