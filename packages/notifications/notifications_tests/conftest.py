"""Test configuration for herald-notifications."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from herald_notifications import (
    ChannelConfig,
    EngineSettings,
    InMemoryConfigurationStore,
    InMemoryProvider,
    NotificationChannel,
    NotificationService,
    NotificationTemplate,
    Tenant,
    TenantStatus,
)

EMAIL = NotificationChannel.EMAIL
SMS = NotificationChannel.SMS
PUSH = NotificationChannel.PUSH
WEBHOOK = NotificationChannel.WEBHOOK


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        self.mono = 1_000.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.mono += seconds

    def advance_to(self, when: datetime) -> None:
        if when > self.now:
            self.advance((when - self.now).total_seconds())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryConfigurationStore:
    store = InMemoryConfigurationStore()
    store.add_tenant(
        Tenant("acme", TenantStatus.ACTIVE, frozenset({EMAIL, SMS, PUSH, WEBHOOK}))
    )
    store.add_tenant(Tenant("globex", TenantStatus.SUSPENDED, frozenset({EMAIL})))

    store.add_channel_config(ChannelConfig("acme", EMAIL, provider="memory-email"))
    store.add_channel_config(ChannelConfig("acme", SMS, provider="memory-sms"))
    store.add_channel_config(ChannelConfig("globex", EMAIL, provider="memory-email"))

    store.publish_template(
        NotificationTemplate(
            tenant_id="acme",
            channel=EMAIL,
            name="welcome",
            subject_template="Hello {{ firstName }}",
            body_template="Welcome aboard, {{ firstName }}!",
            required_variables=frozenset({"firstName"}),
        )
    )
    store.publish_template(
        NotificationTemplate(
            tenant_id="acme",
            channel=EMAIL,
            name="welcome",
            language="fr",
            subject_template="Bonjour {{ firstName }}",
            body_template="Bienvenue, {{ firstName }} !",
            required_variables=frozenset({"firstName"}),
        )
    )
    store.publish_template(
        NotificationTemplate(
            tenant_id="acme",
            channel=SMS,
            name="welcome",
            body_template="Hi {{ firstName }}, welcome to Acme",
        )
    )
    store.publish_template(
        NotificationTemplate(
            tenant_id="acme",
            channel=PUSH,
            name="welcome",
            body_template="Welcome!",
        )
    )
    return store


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        max_attempts=3,
        base_delay_seconds=1.0,
        max_delay_seconds=60.0,
        jitter_seconds=0.0,
        fatal_retry_delay_seconds=5.0,
    )


@pytest.fixture
def email_provider() -> InMemoryProvider:
    return InMemoryProvider(EMAIL)


@pytest.fixture
def sms_provider() -> InMemoryProvider:
    return InMemoryProvider(SMS)


@pytest.fixture
def push_provider() -> InMemoryProvider:
    return InMemoryProvider(PUSH)


@pytest.fixture
def make_service(store, settings, clock, email_provider, sms_provider, push_provider):
    """Factory for a fully wired service on the fake clock."""

    def _make(**overrides: Any) -> NotificationService:
        kwargs: dict[str, Any] = {
            "store": store,
            "providers": [email_provider, sms_provider, push_provider],
            "settings": settings,
            "clock": clock,
            "monotonic": clock.monotonic,
        }
        kwargs.update(overrides)
        return NotificationService(**kwargs)

    return _make


@pytest.fixture
def service(make_service) -> NotificationService:
    return make_service()


def make_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "tenantId": "acme",
        "recipients": ["alice@example.com"],
        "channels": ["EMAIL"],
        "templateName": "welcome",
        "variables": {"firstName": "Alice"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def payload():
    return make_payload


async def drain(service: NotificationService, clock: FakeClock, max_rounds: int = 50) -> None:
    """Run due work, jumping the clock to the next due task until queues are empty."""
    for _ in range(max_rounds):
        await service.run_once()
        dues = [d for d in (q.next_due() for q in service.queues) if d is not None]
        if not dues:
            return
        clock.advance_to(min(dues))
    raise AssertionError("queues did not drain")


@pytest.fixture
def run_until_idle(clock):
    async def _run(service: NotificationService, max_rounds: int = 50) -> None:
        await drain(service, clock, max_rounds)

    return _run
