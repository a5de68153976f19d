"""NotificationService — wires the engine together and exposes its operations."""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from herald_core.adapters.memory.locking import InMemoryLockStrategy
from herald_core.correlation import correlation_scope, get_causation_id, get_correlation_id

from .channel import NotificationChannel
from .dead_letter import DeadLetterHandler
from .delivery import DeliveryStatus
from .exceptions import (
    NotificationValidationError,
    RequestNotFoundError,
    TaskNotFoundError,
    ValidationErrorKind,
)
from .intake import RequestValidator
from .ledger import ChannelStatus, TransitionRecorder, project_request_status
from .memory.ledger import InMemoryStatusLedger
from .memory.repository import InMemoryTaskRepository
from .memory.sink import InMemoryDeadLetterSink
from .providers.registry import ProviderRegistry
from .queue import ChannelQueues
from .rate_limit import TokenBucketRateLimiter
from .retry import RetryPolicy, RetryScheduler
from .router import NotificationRouter
from .settings import EngineSettings
from .template.renderer import TemplateRenderer
from .tenancy import TenantConfigResolver
from .worker import ChannelWorkerPool

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Iterable, Mapping

    from herald_core.ports.locking import ILockStrategy

    from .dead_letter import DeadLetterRecord
    from .ledger import LedgerEntry
    from .ports.ledger import IStatusLedger
    from .ports.provider import IChannelProvider
    from .ports.renderer import ITemplateEngine
    from .ports.repository import ITaskRepository
    from .ports.sink import IDeadLetterSink
    from .ports.store import IConfigurationStore
    from .request import NotificationRequest, RawNotificationRequest
    from .task import DeliveryTask

logger = logging.getLogger("herald.service")

_WAITING = (DeliveryStatus.PENDING_SCHEDULE, DeliveryStatus.RETRY_SCHEDULED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationService:
    """
    Entry point of the notification engine.

    Intake is synchronous up to routing: ``submit`` returns once a task per
    channel is queued and never waits for delivery. Delivery runs in one
    :class:`ChannelWorkerPool` per channel, started with :meth:`start` or
    driven step by step with :meth:`run_once`.

    Collaborators default to the in-memory adapters; pass a persistent
    ``ledger``/``sink``/``repository`` for durable deployments.
    """

    def __init__(
        self,
        *,
        store: IConfigurationStore,
        providers: ProviderRegistry | Iterable[IChannelProvider],
        settings: EngineSettings | None = None,
        repository: ITaskRepository | None = None,
        ledger: IStatusLedger | None = None,
        sink: IDeadLetterSink | None = None,
        locks: ILockStrategy | None = None,
        engine: ITemplateEngine | None = None,
        on_fatal: (
            Callable[[DeliveryTask, BaseException], Coroutine[Any, Any, None]] | None
        ) = None,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.providers = (
            providers if isinstance(providers, ProviderRegistry) else ProviderRegistry(list(providers))
        )
        self.repository = repository or InMemoryTaskRepository()
        self.ledger = ledger or InMemoryStatusLedger()
        self.sink = sink or InMemoryDeadLetterSink()
        self.locks = locks or InMemoryLockStrategy()

        s = self.settings
        self.resolver = TenantConfigResolver(
            store, ttl_seconds=s.config_cache_ttl_seconds, clock=monotonic
        )
        self.validator = RequestValidator(
            self.resolver, default_language=s.default_language, clock=clock
        )
        self.renderer = TemplateRenderer(store, engine, fallback_language=s.default_language)
        self.queues = ChannelQueues(clock=clock)
        self.recorder = TransitionRecorder(self.repository, self.ledger, self.locks, clock=clock)
        self.router = NotificationRouter(self.recorder, self.queues, self.locks, clock=clock)
        self.dead_letters = DeadLetterHandler(self.sink, self.recorder, on_fatal=on_fatal)
        self.retry_policy = RetryPolicy(
            max_attempts=s.max_attempts,
            base_delay=s.base_delay_seconds,
            max_delay=s.max_delay_seconds,
            jitter=s.jitter_seconds,
            rng=rng,
        )
        self.scheduler = RetryScheduler(
            self.retry_policy, self.recorder, self.dead_letters, self.queues, clock=clock
        )
        self.rate_limiter = TokenBucketRateLimiter(clock=monotonic)
        self.pools: dict[NotificationChannel, ChannelWorkerPool] = {
            channel: ChannelWorkerPool(
                self.queues[channel],
                recorder=self.recorder,
                resolver=self.resolver,
                renderer=self.renderer,
                providers=self.providers,
                scheduler=self.scheduler,
                dead_letters=self.dead_letters,
                rate_limiter=self.rate_limiter,
                concurrency=s.workers_per_channel,
                provider_timeout=s.provider_timeout_seconds,
                poll_interval=s.poll_interval_seconds,
                fatal_retry_delay=s.fatal_retry_delay_seconds,
                on_fatal=on_fatal,
                clock=clock,
            )
            for channel in NotificationChannel
        }

    # -- intake -----------------------------------------------------------

    async def submit(
        self,
        raw: RawNotificationRequest | Mapping[str, Any],
    ) -> NotificationRequest:
        """Validate and route a request; returns as soon as every channel is queued.

        Raises:
            NotificationValidationError: Malformed request; nothing was created.
            RoutingError: Some channels could not be recorded; resubmitting
                with the same request id is safe.
        """
        request = await self.validator.validate(raw)
        with correlation_scope(get_correlation_id() or request.request_id, get_causation_id()):
            await self.router.route(request)
        return request

    async def schedule(
        self,
        raw: RawNotificationRequest | Mapping[str, Any],
    ) -> NotificationRequest:
        """Like :meth:`submit`, but ``scheduled_time`` is mandatory."""
        payload = self.validator.parse(raw)
        if payload.scheduled_time is None:
            raise NotificationValidationError(
                ValidationErrorKind.MISSING_FIELD, "scheduled_time", "is required"
            )
        return await self.submit(payload)

    # -- status -----------------------------------------------------------

    async def get_status(self, request_id: str) -> list[ChannelStatus]:
        entries = await self.ledger.entries_for_request(request_id)
        if not entries:
            raise RequestNotFoundError(request_id)
        return project_request_status(entries)

    async def get_task_status(self, task_id: str) -> ChannelStatus:
        entries = await self.ledger.entries_for_task(task_id)
        if not entries:
            raise TaskNotFoundError(task_id)
        return ChannelStatus.from_entry(entries[-1])

    async def get_task(self, task_id: str) -> DeliveryTask:
        task = await self.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def tenant_activity(self, tenant_id: str, limit: int = 100) -> list[LedgerEntry]:
        return await self.ledger.entries_for_tenant(tenant_id, limit)

    async def dead_lettered(self, tenant_id: str | None = None) -> list[DeadLetterRecord]:
        return await self.sink.list_records(tenant_id)

    # -- cancellation -----------------------------------------------------

    async def cancel(self, task_id: str) -> bool:
        """Cancel one task.

        Waiting tasks (scheduled or awaiting a retry) are cancelled at once.
        A task a worker is processing is flagged and will not be retried;
        its current attempt still completes. Unclaimed ``PENDING`` and
        terminal tasks are left alone. Returns whether anything changed.
        """
        task = await self.get_task(task_id)
        if task.is_terminal:
            return False
        queue = self.queues[task.channel]

        if queue.is_claimed(task_id):
            if task.cancel_requested:
                return False
            await self.recorder.apply(task_id, _request_cancel)
            logger.info("Cancel requested for in-flight task %s", task_id)
            return True

        if task.status not in _WAITING:
            return False
        updated = await self.recorder.apply(task_id, _cancel_if_waiting)
        if updated.status is not DeliveryStatus.CANCELLED:
            return False
        queue.discard(task_id)
        logger.info("Cancelled task %s", task_id)
        return True

    async def cancel_request(self, request_id: str) -> int:
        """Cancel every task of a request; returns how many changed."""
        tasks = await self.repository.list_by_request(request_id)
        if not tasks:
            raise RequestNotFoundError(request_id)
        changed = 0
        for task in tasks:
            if await self.cancel(task.task_id):
                changed += 1
        return changed

    # -- workers ----------------------------------------------------------

    async def start(self) -> None:
        for pool in self.pools.values():
            await pool.start()

    async def stop(self) -> None:
        for pool in self.pools.values():
            if pool.running:
                await pool.stop()

    async def run_once(self) -> int:
        """Drain every task that is due now across all channels, without blocking."""
        processed = 0
        for pool in self.pools.values():
            processed += await pool.run_once()
        return processed

    async def __aenter__(self) -> NotificationService:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()


def _request_cancel(task: DeliveryTask) -> None:
    task.cancel_requested = True


def _cancel_if_waiting(task: DeliveryTask) -> None:
    if task.status in _WAITING:
        task.cancel()
