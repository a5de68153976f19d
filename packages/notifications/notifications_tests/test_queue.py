"""Tests for the delayed, single-owner delivery queue."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from herald_notifications import ChannelQueues, DeliveryQueue, NotificationChannel


@pytest.fixture
def queue(clock) -> DeliveryQueue:
    return DeliveryQueue(NotificationChannel.EMAIL, clock=clock)


def test_claims_in_due_order(queue, clock) -> None:
    queue.put("late", clock.now + timedelta(seconds=5))
    queue.put("now")
    queue.put("soon", clock.now + timedelta(seconds=1))

    assert queue.claim_nowait() == "now"
    assert queue.claim_nowait() is None

    clock.advance(10)
    assert queue.claim_nowait() == "soon"
    assert queue.claim_nowait() == "late"


def test_claim_is_exclusive(queue) -> None:
    queue.put("t1")
    assert queue.claim_nowait() == "t1"
    assert queue.is_claimed("t1")
    assert queue.claim_nowait() is None
    assert "t1" not in queue


def test_put_replaces_due_time(queue, clock) -> None:
    queue.put("t1")
    queue.put("t1", clock.now + timedelta(seconds=30))

    assert len(queue) == 1
    assert queue.claim_nowait() is None
    assert queue.next_due() == clock.now + timedelta(seconds=30)


def test_put_while_claimed_waits_for_release(queue) -> None:
    queue.put("t1")
    queue.claim_nowait()
    queue.put("t1")

    assert queue.claim_nowait() is None
    queue.release("t1")
    assert queue.claim_nowait() == "t1"


def test_defer(queue, clock) -> None:
    queue.put("t1")
    queue.claim_nowait()
    queue.defer("t1", 2.0)

    assert not queue.is_claimed("t1")
    assert queue.claim_nowait() is None
    clock.advance(2)
    assert queue.claim_nowait() == "t1"


def test_discard(queue) -> None:
    queue.put("t1")
    queue.put("t2")
    queue.discard("t1")
    queue.discard("missing")

    assert queue.claim_nowait() == "t2"
    assert queue.claim_nowait() is None
    assert len(queue) == 0


def test_ready_count(queue, clock) -> None:
    queue.put("a")
    queue.put("b")
    queue.put("c", clock.now + timedelta(minutes=1))
    assert queue.ready_count() == 2


@pytest.mark.asyncio
async def test_claim_wakes_on_put(queue) -> None:
    waiter = asyncio.create_task(queue.claim(timeout=5.0))
    await asyncio.sleep(0)
    queue.put("t1")
    assert await asyncio.wait_for(waiter, timeout=1.0) == "t1"


@pytest.mark.asyncio
async def test_claim_times_out(queue) -> None:
    assert await queue.claim(timeout=0.01) is None


def test_channel_queues(clock) -> None:
    queues = ChannelQueues(clock=clock)
    queues[NotificationChannel.SMS].put("t1")
    queues[NotificationChannel.SMS].claim_nowait()

    assert len(list(queues)) == len(NotificationChannel)
    assert queues.is_claimed("t1")
    assert len(queues[NotificationChannel.EMAIL]) == 0
