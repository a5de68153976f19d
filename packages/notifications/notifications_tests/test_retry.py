"""Tests for the retry policy and the retry scheduler's outcome mapping."""

from __future__ import annotations

import pytest

from herald_notifications import DeliveryOutcome, DeliveryStatus, NotificationChannel, RetryPolicy


class TestRetryPolicy:
    def test_should_retry_bounds(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry(1)
        assert policy.should_retry(2)
        assert not policy.should_retry(3)
        assert not policy.should_retry(0)

    def test_single_attempt_never_retries(self) -> None:
        assert not RetryPolicy(max_attempts=1).should_retry(1)

    def test_exponential_and_capped(self) -> None:
        policy = RetryPolicy(max_attempts=10, base_delay=1.0, max_delay=10.0, jitter=0)
        delays = [policy.delay_for_attempt(k) for k in range(1, 8)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0, 10.0]

    def test_monotonic_without_jitter(self) -> None:
        policy = RetryPolicy(max_attempts=100, base_delay=0.5, max_delay=300.0, jitter=0)
        delays = [policy.delay_for_attempt(k) for k in range(1, 100)]
        assert delays == sorted(delays)
        assert max(delays) == 300.0

    def test_huge_attempt_numbers_do_not_overflow(self) -> None:
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=60.0, jitter=0)
        assert policy.delay_for_attempt(10_000) == 60.0

    def test_jitter_stays_in_window(self) -> None:
        policy = RetryPolicy(base_delay=2.0, max_delay=60.0, jitter=0.5)
        for _ in range(200):
            assert 2.0 <= policy.delay_for_attempt(1) <= 2.5

    def test_jitter_uses_injected_rng(self) -> None:
        calls = []

        def rng(low: float, high: float) -> float:
            calls.append((low, high))
            return high

        policy = RetryPolicy(base_delay=1.0, max_delay=60.0, jitter=0.25, rng=rng)
        assert policy.delay_for_attempt(2) == 2.25
        assert calls == [(0.0, 0.25)]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": -1.0},
            {"jitter": -0.1},
            {"base_delay": 10.0, "max_delay": 5.0},
        ],
    )
    def test_rejects_invalid_settings(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


@pytest.mark.asyncio
async def test_transient_failure_schedules_retry_with_backoff(
    service, payload, email_provider, clock
) -> None:
    email_provider.script(DeliveryOutcome.transient("503 from upstream"))
    request = await service.submit(payload())
    await service.run_once()

    [task] = await service.repository.list_by_request(request.request_id)
    assert task.status is DeliveryStatus.RETRY_SCHEDULED
    assert task.attempt_count == 1
    assert task.attempts[0].backoff_seconds == 1.0
    assert task.next_attempt_at == clock.now.replace(second=1)
    assert service.queues[NotificationChannel.EMAIL].next_due() == task.next_attempt_at

    entry = service.ledger.entries[-1]
    assert (entry.from_status, entry.to_status) == (
        DeliveryStatus.PENDING,
        DeliveryStatus.RETRY_SCHEDULED,
    )
    assert entry.backoff_seconds == 1.0


@pytest.mark.asyncio
async def test_retry_waits_for_backoff(service, payload, email_provider, clock) -> None:
    email_provider.script(DeliveryOutcome.transient("busy"))
    await service.submit(payload())
    await service.run_once()

    clock.advance(0.5)
    assert await service.run_once() == 0
    assert len(email_provider.calls) == 1

    clock.advance(0.5)
    assert await service.run_once() == 1
    assert len(email_provider.calls) == 2


@pytest.mark.asyncio
async def test_exhausted_retries_dead_letter(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(*(DeliveryOutcome.transient(f"timeout {i}") for i in range(3)))
    request = await service.submit(payload())
    await run_until_idle(service)

    [task] = await service.repository.list_by_request(request.request_id)
    assert task.status is DeliveryStatus.FAILED
    assert task.attempt_count == 3
    assert task.last_error.startswith("Retries exhausted after 3 attempts")
    [record] = await service.dead_lettered("acme")
    assert record.attempt_count == 3
    assert [a.number for a in record.attempts] == [1, 2, 3]


@pytest.mark.asyncio
async def test_backoff_grows_between_attempts(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(*(DeliveryOutcome.transient("busy") for _ in range(3)))
    request = await service.submit(payload())
    await run_until_idle(service)

    [task] = await service.repository.list_by_request(request.request_id)
    assert [a.backoff_seconds for a in task.attempts] == [1.0, 2.0, None]
    gaps = [
        (later.started_at - earlier.started_at).total_seconds()
        for earlier, later in zip(task.attempts, task.attempts[1:])
    ]
    assert gaps == [1.0, 2.0]
