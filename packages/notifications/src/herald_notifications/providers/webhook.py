"""Webhook provider with HMAC signature."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

import httpx

from herald_core.correlation import get_causation_id, get_correlation_id

from ..channel import NotificationChannel
from ..delivery import DeliveryOutcome, mask_recipient
from ..ports.provider import IChannelProvider

if TYPE_CHECKING:
    from ..delivery import RenderedNotification
    from ..ports.secrets import ISecretVault
    from ..tenancy import ChannelConfig

logger = logging.getLogger("herald.providers.webhook")

SIGNATURE_HEADER = "X-Webhook-Signature"


class WebhookProvider(IChannelProvider):
    """
    Generic HTTP POST webhook provider with HMAC-SHA256 signature.

    The target is the config's ``url`` option, falling back to the recipient
    itself. The signing secret is looked up in the secret vault through the
    config's credential handle. Network errors, timeouts and 5xx/429 replies
    are transient; any other 4xx is permanent.
    """

    channel = NotificationChannel.WEBHOOK

    def __init__(
        self,
        vault: ISecretVault | None = None,
        *,
        timeout: float = 10.0,
        user_agent: str = "herald-notifications/0.1.0",
        client: httpx.AsyncClient | None = None,
    ):
        self.vault = vault
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    async def deliver(
        self,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
    ) -> DeliveryOutcome:
        url = config.options.get("url") or recipient
        payload = {
            "tenant_id": config.tenant_id,
            "recipient": recipient,
            "subject": content.subject or "",
            "body_text": content.body_text,
            "body_html": content.body_html,
            "template": content.template_name,
            "template_version": content.template_version,
        }
        body = json.dumps(payload, separators=(",", ":"), sort_keys=True)

        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Correlation-ID": get_correlation_id() or "",
            "X-Causation-ID": get_causation_id() or "",
        }
        if config.credentials_handle and self.vault is not None:
            try:
                secret = await self.vault.reveal(config.credentials_handle)
            except KeyError:
                return DeliveryOutcome.permanent(
                    f"Unknown credential handle {config.credentials_handle!r}"
                )
            headers[SIGNATURE_HEADER] = self.sign(body, secret)

        try:
            response = await self._post(url, body, headers)
        except httpx.TimeoutException as e:
            logger.warning("Webhook timeout for %s: %s", mask_recipient(recipient), e)
            return DeliveryOutcome.transient(f"timeout: {e}")
        except httpx.HTTPError as e:
            logger.warning("Webhook transport error for %s: %s", mask_recipient(recipient), e)
            return DeliveryOutcome.transient(str(e) or type(e).__name__)

        reference = response.headers.get("X-Request-ID")
        if response.is_success:
            logger.info("Webhook delivered to %s", mask_recipient(recipient))
            return DeliveryOutcome.delivered(reference)
        error = f"HTTP {response.status_code}"
        if response.status_code >= 500 or response.status_code == 429:
            return DeliveryOutcome.transient(error, reference)
        logger.error("Webhook rejected by %s: %s", mask_recipient(recipient), error)
        return DeliveryOutcome.permanent(error, reference)

    async def _post(self, url: str, body: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, content=body, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, content=body, headers=headers)

    @staticmethod
    def sign(payload: str, secret: str) -> str:
        digest = hmac.new(
            key=secret.encode("utf-8"),
            msg=payload.encode("utf-8"),
            digestmod=hashlib.sha256,
        ).hexdigest()
        return f"sha256={digest}"

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        """
        Verify webhook signature using constant-time comparison.

        Use this in webhook receivers to authenticate incoming webhooks.
        """
        return hmac.compare_digest(WebhookProvider.sign(payload, secret), signature)
