"""Tests for the provider registry and the bundled providers."""

import json

import httpx
import pytest

from herald_core.correlation import correlation_scope
from herald_notifications import (
    ChannelConfig,
    ConsoleProvider,
    DeliveryOutcome,
    InMemoryProvider,
    InMemorySecretVault,
    NotificationChannel,
    OutcomeKind,
    ProviderNotRegisteredError,
    ProviderRegistry,
    RenderedNotification,
    WebhookProvider,
)

EMAIL = NotificationChannel.EMAIL
WEBHOOK = NotificationChannel.WEBHOOK

CONTENT = RenderedNotification(
    body_text="Order shipped",
    subject="Update",
    template_name="shipping",
    template_version=2,
)


def _webhook_config(**kwargs) -> ChannelConfig:
    return ChannelConfig("acme", WEBHOOK, provider="webhook", **kwargs)


def _provider(handler, vault=None) -> WebhookProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookProvider(vault, client=client)


class TestProviderRegistry:
    def test_register_and_get(self) -> None:
        email = InMemoryProvider(EMAIL)
        registry = ProviderRegistry([email])
        assert registry.get(EMAIL) is email
        assert EMAIL in registry
        assert registry.channels() == [EMAIL]

    def test_unregistered_channel(self) -> None:
        with pytest.raises(ProviderNotRegisteredError):
            ProviderRegistry().get(WEBHOOK)

    def test_one_provider_per_channel(self) -> None:
        registry = ProviderRegistry([InMemoryProvider(EMAIL)])
        with pytest.raises(ValueError):
            registry.register(InMemoryProvider(EMAIL))


@pytest.mark.asyncio
async def test_memory_provider_scripts_outcomes() -> None:
    provider = InMemoryProvider(EMAIL).script(DeliveryOutcome.transient("busy"))
    config = ChannelConfig("acme", EMAIL, provider="memory")

    first = await provider.deliver(config, "a@example.com", CONTENT)
    second = await provider.deliver(config, "a@example.com", CONTENT)

    assert first.kind is OutcomeKind.TRANSIENT_FAILURE
    assert second.kind is OutcomeKind.DELIVERED
    provider.assert_sent("a@example.com")
    with pytest.raises(AssertionError):
        provider.assert_sent("a@example.com", count=2)

    provider.clear()
    assert provider.calls == []


@pytest.mark.asyncio
async def test_console_provider_prints_output(capsys) -> None:
    provider = ConsoleProvider(NotificationChannel.SMS)
    outcome = await provider.deliver(
        ChannelConfig("acme", NotificationChannel.SMS, provider="console"), "+1234567890", CONTENT
    )

    captured = capsys.readouterr()
    assert "[SMS] tenant=acme provider=console" in captured.out
    assert "shipping v2" in captured.out
    assert "+1234567890" in captured.out
    assert "Order shipped" in captured.out
    assert outcome.kind is OutcomeKind.DELIVERED
    assert outcome.provider_reference.startswith("console-")


@pytest.mark.asyncio
async def test_console_provider_silent(capsys) -> None:
    provider = ConsoleProvider(EMAIL, output_to_stdout=False)
    await provider.deliver(ChannelConfig("acme", EMAIL, provider="console"), "a@example.com", CONTENT)
    assert capsys.readouterr().out == ""


@pytest.mark.asyncio
async def test_webhook_posts_signed_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, headers={"X-Request-ID": "wh-1"})

    vault = InMemorySecretVault({"acme-hook": "s3cret"})
    provider = _provider(handler, vault)
    config = _webhook_config(credentials_handle="acme-hook", options={"url": "https://hooks.acme.test/in"})

    with correlation_scope("corr-1", "task-1"):
        outcome = await provider.deliver(config, "ops-team", CONTENT)

    assert outcome == DeliveryOutcome.delivered("wh-1")
    [request] = seen
    assert str(request.url) == "https://hooks.acme.test/in"
    body = request.content.decode()
    assert json.loads(body)["recipient"] == "ops-team"
    assert json.loads(body)["template_version"] == 2
    assert request.headers["X-Correlation-ID"] == "corr-1"
    assert WebhookProvider.verify_signature(body, request.headers["X-Webhook-Signature"], "s3cret")
    assert not WebhookProvider.verify_signature(body, request.headers["X-Webhook-Signature"], "other")


@pytest.mark.asyncio
async def test_webhook_without_credentials_is_unsigned() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    outcome = await _provider(handler).deliver(_webhook_config(), "https://example.test/hook", CONTENT)

    assert outcome.kind is OutcomeKind.DELIVERED
    assert "X-Webhook-Signature" not in seen[0].headers
    assert str(seen[0].url) == "https://example.test/hook"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (500, OutcomeKind.TRANSIENT_FAILURE),
        (503, OutcomeKind.TRANSIENT_FAILURE),
        (429, OutcomeKind.TRANSIENT_FAILURE),
        (400, OutcomeKind.PERMANENT_FAILURE),
        (410, OutcomeKind.PERMANENT_FAILURE),
    ],
)
async def test_webhook_status_classification(status, kind) -> None:
    provider = _provider(lambda request: httpx.Response(status))
    outcome = await provider.deliver(_webhook_config(), "https://example.test/hook", CONTENT)
    assert outcome.kind is kind
    assert outcome.error == f"HTTP {status}"


@pytest.mark.asyncio
async def test_webhook_transport_errors_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    outcome = await _provider(handler).deliver(_webhook_config(), "https://example.test/hook", CONTENT)
    assert outcome.kind is OutcomeKind.TRANSIENT_FAILURE


@pytest.mark.asyncio
async def test_webhook_timeout_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    outcome = await _provider(handler).deliver(_webhook_config(), "https://example.test/hook", CONTENT)
    assert outcome.kind is OutcomeKind.TRANSIENT_FAILURE
    assert outcome.error.startswith("timeout")


@pytest.mark.asyncio
async def test_webhook_unknown_credential_handle_is_permanent() -> None:
    provider = _provider(lambda request: httpx.Response(200), InMemorySecretVault())
    outcome = await provider.deliver(
        _webhook_config(credentials_handle="missing"), "https://example.test/hook", CONTENT
    )
    assert outcome.kind is OutcomeKind.PERMANENT_FAILURE
