"""Channel provider port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..delivery import DeliveryOutcome, RenderedNotification
    from ..tenancy import ChannelConfig


@runtime_checkable
class IChannelProvider(Protocol):
    """
    One delivery capability per channel, implemented outside the engine.

    Implementations report failures through the returned outcome, or by
    raising ``TransientDeliveryError`` / ``PermanentDeliveryError``. Any other
    exception, and a call exceeding the engine's timeout, count as transient.
    """

    channel: NotificationChannel

    async def deliver(
        self,
        config: ChannelConfig,
        recipient: str,
        content: RenderedNotification,
    ) -> DeliveryOutcome:
        """Deliver *content* to one recipient and classify the result."""
        ...
