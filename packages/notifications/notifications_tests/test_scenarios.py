"""End-to-end delivery scenarios on the in-memory stack."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from herald_notifications import (
    DeliveryOutcome,
    DeliveryStatus,
    EngineSettings,
    NotificationChannel,
    NotificationTemplate,
    OutcomeKind,
    PermanentDeliveryError,
)

EMAIL = NotificationChannel.EMAIL
SMS = NotificationChannel.SMS
PUSH = NotificationChannel.PUSH


class SlowProvider:
    """Provider that never answers within the engine timeout."""

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel
        self.calls = 0

    async def deliver(self, config, recipient, content) -> DeliveryOutcome:
        self.calls += 1
        await asyncio.sleep(10)
        return DeliveryOutcome.delivered()


async def _task(service, request_id, channel):
    tasks = await service.repository.list_by_request(request_id)
    return next(t for t in tasks if t.channel is channel)


@pytest.mark.asyncio
async def test_mixed_outcomes_across_channels(
    service, payload, email_provider, sms_provider, run_until_idle
) -> None:
    sms_provider.script(DeliveryOutcome.transient("carrier busy"), DeliveryOutcome.transient("carrier busy"))
    request = await service.submit(payload(channels=["EMAIL", "SMS"], recipients=["+15550001"]))
    await run_until_idle(service)

    email = await _task(service, request.request_id, EMAIL)
    sms = await _task(service, request.request_id, SMS)
    assert (email.status, email.attempt_count) == (DeliveryStatus.SENT, 1)
    assert (sms.status, sms.attempt_count) == (DeliveryStatus.SENT, 3)
    assert [a.backoff_seconds for a in sms.attempts if a.backoff_seconds is not None] == [1.0, 2.0]

    rows = {r.channel: r for r in await service.get_status(request.request_id)}
    assert rows[EMAIL].status is DeliveryStatus.SENT
    assert (rows[SMS].status, rows[SMS].attempts) == (DeliveryStatus.SENT, 3)


@pytest.mark.asyncio
async def test_missing_template_variable_fails_channel_without_provider_call(
    service, payload, email_provider, run_until_idle
) -> None:
    request = await service.submit(payload(variables={"lastName": "Smith"}))
    await run_until_idle(service)

    assert email_provider.calls == []
    [row] = await service.get_status(request.request_id)
    assert row.status is DeliveryStatus.FAILED
    assert row.attempts == 0
    assert row.last_error.startswith("MissingVariable: welcome")
    [record] = await service.dead_lettered()
    assert record.reason == row.last_error


@pytest.mark.asyncio
async def test_always_transient_escalates_after_three_attempts(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(*(DeliveryOutcome.transient("connection reset") for _ in range(10)))
    request = await service.submit(payload())
    await run_until_idle(service)

    [row] = await service.get_status(request.request_id)
    assert (row.status, row.attempts) == (DeliveryStatus.FAILED, 3)
    assert len(email_provider.calls) == 3
    [record] = await service.dead_lettered("acme")
    assert len(record.attempts) == 3
    assert all(a.outcome is OutcomeKind.TRANSIENT_FAILURE for a in record.attempts)


@pytest.mark.asyncio
async def test_scheduled_request_dispatches_once_at_due_time(
    service, payload, email_provider, clock
) -> None:
    when = clock.now + timedelta(minutes=10)
    request = await service.submit(payload(scheduledTime=when.isoformat()))

    [row] = await service.get_status(request.request_id)
    assert row.status is DeliveryStatus.PENDING_SCHEDULE
    assert await service.run_once() == 0

    clock.advance(9 * 60 + 59)
    assert await service.run_once() == 0
    assert email_provider.calls == []

    clock.advance(1)
    await service.run_once()
    clock.advance(3600)
    await service.run_once()

    email_provider.assert_sent("alice@example.com", count=1)
    transitions = [(e.from_status, e.to_status) for e in service.ledger.entries]
    assert transitions == [
        (None, DeliveryStatus.PENDING_SCHEDULE),
        (DeliveryStatus.PENDING_SCHEDULE, DeliveryStatus.PENDING),
        (DeliveryStatus.PENDING, DeliveryStatus.SENT),
    ]


@pytest.mark.asyncio
async def test_missing_channel_config_fails_only_that_channel(
    service, payload, email_provider, push_provider, run_until_idle
) -> None:
    request = await service.submit(payload(channels=["EMAIL", "PUSH"]))
    await run_until_idle(service)

    assert (await _task(service, request.request_id, EMAIL)).status is DeliveryStatus.SENT
    push = await _task(service, request.request_id, PUSH)
    assert push.status is DeliveryStatus.FAILED
    assert "No push configuration" in push.last_error
    assert push_provider.calls == []


@pytest.mark.asyncio
async def test_suspended_tenant_fails_at_delivery(
    service, payload, email_provider, run_until_idle
) -> None:
    request = await service.submit(payload(tenantId="globex"))
    await run_until_idle(service)

    [row] = await service.get_status(request.request_id)
    assert row.status is DeliveryStatus.FAILED
    assert "suspended" in row.last_error
    assert email_provider.calls == []


@pytest.mark.asyncio
async def test_unregistered_provider_dead_letters(
    make_service, payload, email_provider, run_until_idle
) -> None:
    service = make_service(providers=[email_provider])
    request = await service.submit(payload(channels=["SMS"], recipients=["+15550001"]))
    await run_until_idle(service)

    [row] = await service.get_status(request.request_id)
    assert row.status is DeliveryStatus.FAILED
    assert "No provider registered" in row.last_error


@pytest.mark.asyncio
async def test_provider_timeout_is_transient(make_service, store, clock, payload, run_until_idle) -> None:
    slow = SlowProvider(EMAIL)
    service = make_service(
        providers=[slow],
        settings=EngineSettings(jitter_seconds=0, provider_timeout_seconds=0.01, max_attempts=2),
    )
    request = await service.submit(payload())
    await run_until_idle(service)

    task = await _task(service, request.request_id, EMAIL)
    assert slow.calls == 2
    assert task.status is DeliveryStatus.FAILED
    assert all(a.outcome is OutcomeKind.TRANSIENT_FAILURE for a in task.attempts)
    assert "timed out" in task.attempts[0].error


@pytest.mark.asyncio
async def test_provider_exceptions_are_classified(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(RuntimeError("socket closed"), PermanentDeliveryError("blocked sender"))
    request = await service.submit(payload())
    await run_until_idle(service)

    task = await _task(service, request.request_id, EMAIL)
    assert [a.outcome for a in task.attempts] == [
        OutcomeKind.TRANSIENT_FAILURE,
        OutcomeKind.PERMANENT_FAILURE,
    ]
    assert "RuntimeError: socket closed" in task.attempts[0].error
    assert task.status is DeliveryStatus.FAILED
    assert task.last_error.startswith("Permanent failure")


@pytest.mark.asyncio
async def test_permanent_failure_skips_retries(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(DeliveryOutcome.permanent("invalid address"))
    request = await service.submit(payload())
    await run_until_idle(service)

    task = await _task(service, request.request_id, EMAIL)
    assert (task.status, task.attempt_count) == (DeliveryStatus.FAILED, 1)
    assert len(email_provider.calls) == 1


@pytest.mark.asyncio
async def test_content_is_rendered_once_per_task(
    service, store, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(DeliveryOutcome.transient("busy"))
    request = await service.submit(payload())
    await service.run_once()

    store.publish_template(
        NotificationTemplate(
            tenant_id="acme",
            channel=EMAIL,
            name="welcome",
            subject_template="Changed",
            body_template="Changed body",
            required_variables=frozenset({"firstName"}),
        )
    )
    await run_until_idle(service)

    task = await _task(service, request.request_id, EMAIL)
    assert task.status is DeliveryStatus.SENT
    assert [c.content.body_text for c in email_provider.calls] == ["Welcome aboard, Alice!"] * 2
    assert task.rendered.template_version == 1


@pytest.mark.asyncio
async def test_retry_only_targets_undelivered_recipients(
    service, payload, email_provider, run_until_idle
) -> None:
    email_provider.script(
        DeliveryOutcome.delivered("ok-1"),
        DeliveryOutcome.transient("greylisted"),
    )
    request = await service.submit(payload(recipients=["alice@example.com", "bob@example.com"]))
    await run_until_idle(service)

    task = await _task(service, request.request_id, EMAIL)
    assert task.status is DeliveryStatus.SENT
    assert task.attempt_count == 2
    assert [c.recipient for c in email_provider.calls] == [
        "alice@example.com",
        "bob@example.com",
        "bob@example.com",
    ]
    email_provider.assert_sent("alice@example.com", count=1)
    assert task.delivered_recipients == ["alice@example.com", "bob@example.com"]


@pytest.mark.asyncio
async def test_correlation_id_flows_to_ledger(service, payload, run_until_idle) -> None:
    request = await service.submit(payload(clientRequestId="order-77"))
    await run_until_idle(service)

    assert {e.correlation_id for e in service.ledger.entries} == {request.request_id}
