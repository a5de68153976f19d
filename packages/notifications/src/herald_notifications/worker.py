"""ChannelWorkerPool — claim, render, deliver, classify, report."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from herald_core.correlation import correlation_scope
from herald_core.ports.background_worker import IBackgroundWorker
from herald_core.primitives.exceptions import LockAcquisitionError

from .delivery import (
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryStatus,
    RecipientResult,
    mask_recipient,
)
from .exceptions import (
    ConfigNotFoundError,
    DeadLetterWriteFailure,
    LedgerWriteFailure,
    PermanentDeliveryError,
    ProviderNotRegisteredError,
    RateLimitExceeded,
    TaskStateError,
    TemplateRenderError,
    TransientDeliveryError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from .dead_letter import DeadLetterHandler
    from .delivery import RenderedNotification
    from .ledger import TransitionRecorder
    from .ports.provider import IChannelProvider
    from .providers.registry import ProviderRegistry
    from .queue import DeliveryQueue
    from .rate_limit import TokenBucketRateLimiter
    from .retry import RetryScheduler
    from .task import DeliveryTask
    from .template.renderer import TemplateRenderer
    from .tenancy import ChannelConfig, TenantConfigResolver

logger = logging.getLogger("herald.worker")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelWorkerPool(IBackgroundWorker):
    """Independent pool of workers draining one channel's queue.

    Each worker claims one task at a time; the queue guarantees no task is
    owned by two workers. The worker never retries inline: it classifies the
    attempt, hands it to the :class:`RetryScheduler` and releases the claim.
    A task whose processing hit a ledger or dead-letter write failure, or any
    unexpected error, is requeued after ``fatal_retry_delay`` rather than
    dropped.

    Implements ``IBackgroundWorker`` (``start`` / ``stop`` / ``run_once``).
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        *,
        recorder: TransitionRecorder,
        resolver: TenantConfigResolver,
        renderer: TemplateRenderer,
        providers: ProviderRegistry,
        scheduler: RetryScheduler,
        dead_letters: DeadLetterHandler,
        rate_limiter: TokenBucketRateLimiter,
        concurrency: int = 4,
        provider_timeout: float = 10.0,
        poll_interval: float = 1.0,
        fatal_retry_delay: float = 5.0,
        on_fatal: (
            Callable[[DeliveryTask, BaseException], Coroutine[Any, Any, None]] | None
        ) = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.channel = queue.channel
        self._queue = queue
        self._recorder = recorder
        self._repository = recorder.repository
        self._resolver = resolver
        self._renderer = renderer
        self._providers = providers
        self._scheduler = scheduler
        self._dead_letters = dead_letters
        self._rate_limiter = rate_limiter
        self._concurrency = concurrency
        self._provider_timeout = provider_timeout
        self._poll_interval = poll_interval
        self._fatal_retry_delay = fatal_retry_delay
        self._on_fatal = on_fatal
        self._clock = clock
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._run_loop(i), name=f"herald-{self.channel.value}-{i}")
            for i in range(self._concurrency)
        ]
        logger.info(
            "ChannelWorkerPool[%s] started (workers=%d, poll_interval=%.1fs)",
            self.channel.value,
            self._concurrency,
            self._poll_interval,
        )

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(task, timeout=5.0)
        self._tasks = []
        logger.info("ChannelWorkerPool[%s] stopped", self.channel.value)

    async def run_once(self) -> int:
        """Process every task that is due now, one after the other (useful in tests)."""
        count = 0
        while (task_id := self._queue.claim_nowait()) is not None:
            await self.process(task_id)
            count += 1
        return count

    async def _run_loop(self, index: int) -> None:
        while self._running:
            try:
                task_id = await self._queue.claim(timeout=self._poll_interval)
                if task_id is not None:
                    await self.process(task_id)
            except Exception:
                logger.exception("ChannelWorkerPool[%s] worker %d error", self.channel.value, index)

    async def process(self, task_id: str) -> None:
        """Run one claimed task through a single attempt; always gives the claim back."""
        requeue_after: float | None = None
        try:
            task = await self._repository.get(task_id)
            if task is None or task.is_terminal:
                return
            with correlation_scope(task.correlation_id, task.task_id):
                requeue_after = await self._handle(task)
        except (LedgerWriteFailure, DeadLetterWriteFailure) as e:
            logger.critical("Task %s held after write failure: %s", task_id, e)
            if isinstance(e, LedgerWriteFailure):
                await self._alert(task_id, e)
            requeue_after = self._fatal_retry_delay
        except LockAcquisitionError as e:
            logger.warning("Task %s busy, requeued: %s", task_id, e)
            requeue_after = self._poll_interval
        except asyncio.CancelledError:
            logger.info("Task %s interrupted by shutdown, requeued", task_id)
            requeue_after = 0.0
            raise
        except Exception as e:
            logger.exception("Unexpected error processing task %s", task_id)
            await self._alert(task_id, e)
            requeue_after = self._fatal_retry_delay
        finally:
            if requeue_after is not None:
                self._queue.defer(task_id, requeue_after)
            else:
                self._queue.release(task_id)

    async def _handle(self, task: DeliveryTask) -> float | None:
        """Returns a requeue delay when the task must come back later."""
        if task.pending_dead_letter is not None:
            await self._dead_letters.retry_pending(task.task_id)
            return None

        if task.cancel_requested:
            await self._recorder.apply(task.task_id, _cancel_flagged)
            logger.info("Task %s cancelled before its next attempt", task.task_id)
            return None

        if task.status in (DeliveryStatus.PENDING_SCHEDULE, DeliveryStatus.RETRY_SCHEDULED):
            now = self._clock()
            if task.next_attempt_at is not None and task.next_attempt_at > now:
                return (task.next_attempt_at - now).total_seconds()
            try:
                task = await self._recorder.apply(task.task_id, _promote)
            except TaskStateError:
                current = await self._repository.get(task.task_id)
                if current is None or current.is_terminal:
                    logger.info("Task %s finished before promotion", task.task_id)
                    return None
                raise

        try:
            config = await self._resolver.resolve(task.tenant_id, task.channel)
        except ConfigNotFoundError as e:
            await self._dead_letters.dead_letter(task.task_id, str(e))
            return None

        try:
            self._rate_limiter.acquire(task.tenant_id, task.channel, config.rate_limit_per_minute)
        except RateLimitExceeded as e:
            logger.debug("Task %s deferred %.2fs by rate limit", task.task_id, e.retry_after)
            return e.retry_after

        content = task.rendered
        if content is None:
            try:
                content = await self._renderer.render(
                    task.tenant_id, task.channel, task.template_name, task.language, task.variables
                )
            except TemplateRenderError as e:
                await self._dead_letters.dead_letter(task.task_id, str(e))
                return None
            task = await self._recorder.apply(task.task_id, _store_rendered(content))

        try:
            provider = self._providers.get(task.channel)
        except ProviderNotRegisteredError as e:
            await self._dead_letters.dead_letter(task.task_id, str(e))
            return None

        started_at = self._clock()
        results = [
            RecipientResult(recipient, await self._call(provider, config, recipient, content))
            for recipient in task.remaining_recipients
        ]
        attempt = DeliveryAttempt.from_results(
            task.attempt_count + 1, started_at, results, finished_at=self._clock()
        )
        await self._scheduler.report(task, attempt)
        return None

    async def _call(
        self,
        provider: IChannelProvider,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
    ) -> DeliveryOutcome:
        try:
            return await asyncio.wait_for(
                provider.deliver(config, recipient, content), timeout=self._provider_timeout
            )
        except asyncio.TimeoutError:
            return DeliveryOutcome.transient(f"Provider timed out after {self._provider_timeout}s")
        except PermanentDeliveryError as e:
            return DeliveryOutcome.permanent(str(e), e.provider_reference)
        except TransientDeliveryError as e:
            return DeliveryOutcome.transient(str(e), e.provider_reference)
        except Exception as e:
            logger.warning(
                "Provider %s raised for %s: %s",
                type(provider).__name__,
                mask_recipient(recipient),
                e,
            )
            return DeliveryOutcome.transient(f"{type(e).__name__}: {e}")

    async def _alert(self, task_id: str, error: BaseException) -> None:
        if self._on_fatal is None:
            return
        task = await self._repository.get(task_id)
        if task is None:
            return
        try:
            await self._on_fatal(task, error)
        except Exception:
            logger.exception("on_fatal callback failed for task %s", task_id)


def _promote(task: DeliveryTask) -> None:
    task.promote()


def _store_rendered(content: RenderedNotification) -> Callable[[DeliveryTask], None]:
    def _apply(task: DeliveryTask) -> None:
        task.rendered = content

    return _apply


def _cancel_flagged(task: DeliveryTask) -> None:
    if not task.is_terminal:
        task.cancel("Cancelled before delivery")
