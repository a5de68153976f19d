"""In-memory provider for test assertions."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..delivery import DeliveryOutcome, OutcomeKind
from ..ports.provider import IChannelProvider

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..delivery import RenderedNotification
    from ..tenancy import ChannelConfig

logger = logging.getLogger("herald.providers")


@dataclass
class SentMessage:
    """Record of one provider call for test assertions."""

    tenant_id: str
    recipient: str
    content: RenderedNotification
    outcome: DeliveryOutcome


class InMemoryProvider(IChannelProvider):
    """
    Test double (Fake) that records every call and replies with scripted outcomes.

    Outcomes queued with :meth:`script` are consumed in order; once the script
    runs out every call is ``Delivered``. Queued exceptions are raised instead
    of returned.
    """

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel
        self.calls: list[SentMessage] = []
        self._script: deque[DeliveryOutcome | BaseException] = deque()

    def script(self, *outcomes: DeliveryOutcome | BaseException) -> InMemoryProvider:
        self._script.extend(outcomes)
        return self

    async def deliver(
        self,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
    ) -> DeliveryOutcome:
        step = self._script.popleft() if self._script else None
        if isinstance(step, BaseException):
            self.calls.append(
                SentMessage(config.tenant_id, recipient, content, DeliveryOutcome.transient(str(step)))
            )
            raise step
        outcome = step or DeliveryOutcome.delivered(f"mem-{len(self.calls) + 1}")
        self.calls.append(SentMessage(config.tenant_id, recipient, content, outcome))
        return outcome

    @property
    def delivered(self) -> list[SentMessage]:
        return [c for c in self.calls if c.outcome.kind is OutcomeKind.DELIVERED]

    def assert_sent(self, recipient: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [m for m in self.delivered if m.recipient == recipient]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {self.channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        self.calls.clear()
        self._script.clear()
