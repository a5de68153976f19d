"""Tests for per-tenant, per-channel token buckets."""

from __future__ import annotations

import pytest

from herald_notifications import (
    ChannelConfig,
    DeliveryStatus,
    NotificationChannel,
    RateLimitExceeded,
    TokenBucketRateLimiter,
)

EMAIL = NotificationChannel.EMAIL
SMS = NotificationChannel.SMS


def test_unlimited(clock) -> None:
    limiter = TokenBucketRateLimiter(clock=clock.monotonic)
    for _ in range(1000):
        limiter.acquire("acme", EMAIL, None)
        limiter.acquire("acme", EMAIL, 0)


def test_burst_then_refill(clock) -> None:
    limiter = TokenBucketRateLimiter(clock=clock.monotonic)
    for _ in range(2):
        limiter.acquire("acme", EMAIL, 2)

    with pytest.raises(RateLimitExceeded) as exc_info:
        limiter.acquire("acme", EMAIL, 2)
    assert exc_info.value.retry_after == pytest.approx(30.0)

    clock.advance(31)
    limiter.acquire("acme", EMAIL, 2)


def test_buckets_are_per_tenant_and_channel(clock) -> None:
    limiter = TokenBucketRateLimiter(clock=clock.monotonic)
    limiter.acquire("acme", EMAIL, 1)

    limiter.acquire("acme", SMS, 1)
    limiter.acquire("globex", EMAIL, 1)
    with pytest.raises(RateLimitExceeded):
        limiter.acquire("acme", EMAIL, 1)


def test_reset(clock) -> None:
    limiter = TokenBucketRateLimiter(clock=clock.monotonic)
    limiter.acquire("acme", EMAIL, 1)
    limiter.reset("acme")
    limiter.acquire("acme", EMAIL, 1)


@pytest.mark.asyncio
async def test_rate_limited_task_is_deferred_not_failed(
    store, service, payload, email_provider, clock
) -> None:
    store.add_channel_config(
        ChannelConfig("acme", EMAIL, provider="memory-email", rate_limit_per_minute=1)
    )
    first = await service.submit(payload())
    second = await service.submit(payload())

    assert await service.run_once() == 2
    assert len(email_provider.calls) == 1

    [deferred] = await service.repository.list_by_request(second.request_id)
    assert deferred.status is DeliveryStatus.PENDING
    assert deferred.attempt_count == 0
    assert service.queues[EMAIL].next_due() is not None

    clock.advance(61)
    await service.run_once()
    assert len(email_provider.calls) == 2
    for request in (first, second):
        [task] = await service.repository.list_by_request(request.request_id)
        assert task.status is DeliveryStatus.SENT
