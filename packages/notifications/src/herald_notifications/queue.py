"""Per-channel delivery queues with delayed visibility and single-owner claims."""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import itertools
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .channel import NotificationChannel

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger("herald.queue")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryQueue:
    """
    Holds task ids for one channel until they are due.

    Each id is visible to at most one worker at a time: :meth:`claim` hands
    it out and it stays owned until :meth:`release`. Putting an id that is
    already queued replaces its due time; putting an id that is currently
    claimed takes effect when the claim is released.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.channel = channel
        self._clock = clock
        self._heap: list[tuple[datetime, int, str]] = []
        self._current: dict[str, int] = {}
        self._claimed: set[str] = set()
        self._parked: dict[str, datetime] = {}
        self._seq = itertools.count()
        self._changed = asyncio.Event()

    def __len__(self) -> int:
        return len(self._current) + len(self._parked)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._current or task_id in self._parked

    def put(self, task_id: str, not_before: datetime | None = None) -> None:
        """Make *task_id* claimable at or after *not_before* (now if omitted)."""
        due = not_before or self._clock()
        if task_id in self._claimed:
            self._parked[task_id] = due
            return
        seq = next(self._seq)
        self._current[task_id] = seq
        heapq.heappush(self._heap, (due, seq, task_id))
        self._changed.set()

    def discard(self, task_id: str) -> None:
        """Drop a queued id; no-op if absent."""
        self._current.pop(task_id, None)
        self._parked.pop(task_id, None)

    def claim_nowait(self) -> str | None:
        """Claim the earliest due task, or return None if nothing is due."""
        now = self._clock()
        while self._heap:
            due, seq, task_id = self._heap[0]
            if self._current.get(task_id) != seq:
                heapq.heappop(self._heap)
                continue
            if due > now:
                return None
            heapq.heappop(self._heap)
            del self._current[task_id]
            self._claimed.add(task_id)
            return task_id
        return None

    async def claim(self, timeout: float) -> str | None:
        """Wait up to *timeout* seconds for a due task and claim it."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            task_id = self.claim_nowait()
            if task_id is not None:
                return task_id
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            wait = remaining
            next_due = self.next_due()
            if next_due is not None:
                wait = min(wait, max(0.0, (next_due - self._clock()).total_seconds()))
            self._changed.clear()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._changed.wait(), timeout=wait)

    def release(self, task_id: str) -> None:
        """Give up ownership; a put made while claimed becomes visible now."""
        self._claimed.discard(task_id)
        due = self._parked.pop(task_id, None)
        if due is not None:
            self.put(task_id, due)

    def defer(self, task_id: str, delay_seconds: float) -> None:
        """Release a claim and requeue the task after *delay_seconds*."""
        self._parked.pop(task_id, None)
        self._claimed.discard(task_id)
        self.put(task_id, self._clock() + timedelta(seconds=delay_seconds))

    def is_claimed(self, task_id: str) -> bool:
        return task_id in self._claimed

    def next_due(self) -> datetime | None:
        while self._heap:
            _, seq, task_id = self._heap[0]
            if self._current.get(task_id) == seq:
                return self._heap[0][0]
            heapq.heappop(self._heap)
        return None

    def ready_count(self) -> int:
        now = self._clock()
        return sum(
            1 for due, seq, task_id in self._heap if self._current.get(task_id) == seq and due <= now
        )


class ChannelQueues:
    """One :class:`DeliveryQueue` per channel kind."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._queues = {channel: DeliveryQueue(channel, clock=clock) for channel in NotificationChannel}

    def __getitem__(self, channel: NotificationChannel) -> DeliveryQueue:
        return self._queues[channel]

    def __iter__(self) -> Iterator[DeliveryQueue]:
        return iter(self._queues.values())

    def is_claimed(self, task_id: str) -> bool:
        return any(q.is_claimed(task_id) for q in self._queues.values())
