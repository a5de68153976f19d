"""Console provider for local development."""

from __future__ import annotations

import logging
import sys
import uuid
from typing import TYPE_CHECKING, TextIO

from ..delivery import DeliveryOutcome, mask_recipient
from ..ports.provider import IChannelProvider

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..delivery import RenderedNotification
    from ..tenancy import ChannelConfig

logger = logging.getLogger("herald.providers")

_RULE = "─" * 60


class ConsoleProvider(IChannelProvider):
    """
    Writes each notification to a stream instead of sending it.

    Always reports ``Delivered`` with a ``console-`` reference. With
    ``output_to_stdout=False`` only the (masked) log line is emitted.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        output_to_stdout: bool = True,
        stream: TextIO | None = None,
    ):
        self.channel = channel
        self.output_to_stdout = output_to_stdout
        self._stream = stream

    async def deliver(
        self,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
    ) -> DeliveryOutcome:
        reference = f"console-{uuid.uuid4().hex[:12]}"
        logger.info(
            "Console %s delivery of %s to %s (%s)",
            self.channel.value,
            content.template_name,
            mask_recipient(recipient),
            reference,
        )
        if self.output_to_stdout:
            print(self._format(config, recipient, content, reference), file=self._stream or sys.stdout)
        return DeliveryOutcome.delivered(reference)

    def _format(
        self,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
        reference: str,
    ) -> str:
        template = content.template_name or "-"
        if content.template_version is not None:
            template += f" v{content.template_version}"
        lines = [
            _RULE,
            f"[{self.channel.name}] tenant={config.tenant_id} provider={config.provider} ref={reference}",
            f"  to       {recipient}",
            f"  template {template}",
        ]
        if content.subject:
            lines.append(f"  subject  {content.subject}")
        lines.append(f"  body     {content.body_text}")
        if content.body_html:
            lines.append(f"  html     {len(content.body_html)} chars")
        lines.append(_RULE)
        return "\n".join(lines)
