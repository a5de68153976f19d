"""NotificationRouter — one idempotent DeliveryTask per requested channel."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from herald_core.correlation import get_correlation_id
from herald_core.ports.locking import hold
from herald_core.primitives.exceptions import ConcurrencyError
from herald_core.primitives.locking import ResourceIdentifier

from .delivery import DeliveryStatus
from .exceptions import RoutingError
from .task import DeliveryTask, idempotency_key

if TYPE_CHECKING:
    from collections.abc import Callable

    from herald_core.ports.locking import ILockStrategy

    from .channel import NotificationChannel
    from .ledger import TransitionRecorder
    from .queue import ChannelQueues
    from .request import NotificationRequest

logger = logging.getLogger("herald.router")

# An existing task in one of these states does not block a new one for the same key.
_REPLACEABLE = frozenset({DeliveryStatus.FAILED, DeliveryStatus.CANCELLED})


class NotificationRouter:
    """
    Fans a validated request out to per-channel delivery queues.

    Task creation for one idempotency key is check-then-create under a
    per-key lock, with the index itself moved by ``compare_and_swap``. A
    channel whose routing fails does not stop the others; the failures are
    raised together as :class:`RoutingError` once every channel was tried.
    """

    def __init__(
        self,
        recorder: TransitionRecorder,
        queues: ChannelQueues,
        locks: ILockStrategy,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        lock_timeout: float = 10.0,
    ) -> None:
        self._recorder = recorder
        self._repository = recorder.repository
        self._queues = queues
        self._locks = locks
        self._clock = clock
        self._lock_timeout = lock_timeout

    async def route(self, request: NotificationRequest) -> list[DeliveryTask]:
        """Return the task per channel, newly created or the live existing one."""
        tasks: list[DeliveryTask] = []
        failures: dict[str, BaseException] = {}
        for channel in request.channels:
            try:
                tasks.append(await self._route_channel(request, channel))
            except Exception as e:
                logger.error(
                    "Routing %s for request %s failed: %s", channel.value, request.request_id, e
                )
                failures[channel.value] = e
        if failures:
            raise RoutingError(request.request_id, failures, tasks)
        return tasks

    async def _route_channel(
        self,
        request: NotificationRequest,
        channel: NotificationChannel,
    ) -> DeliveryTask:
        key = idempotency_key(request.tenant_id, request.request_id, channel)
        resource = ResourceIdentifier("idempotency_key", key)
        async with hold(self._locks, resource, timeout=self._lock_timeout):
            existing = await self._repository.get_by_key(key)
            if existing is not None and existing.status not in _REPLACEABLE:
                logger.info(
                    "Duplicate %s submission for request %s; task %s is %s",
                    channel.value,
                    request.request_id,
                    existing.task_id,
                    existing.status.value,
                )
                return existing

            task = DeliveryTask.for_channel(
                request, channel, now=self._clock(), correlation_id=get_correlation_id()
            )
            previous = existing.task_id if existing is not None else None
            if not await self._repository.compare_and_swap(key, previous, task.task_id):
                raise ConcurrencyError(f"Idempotency index for {channel.value} changed concurrently")
            try:
                await self._recorder.record_created(task)
            except Exception:
                await self._repository.compare_and_swap(key, task.task_id, previous)
                raise

        self._queues[channel].put(task.task_id, task.next_attempt_at)
        logger.debug(
            "Routed request %s to %s as task %s (%s)",
            request.request_id,
            channel.value,
            task.task_id,
            task.status.value,
        )
        return task
