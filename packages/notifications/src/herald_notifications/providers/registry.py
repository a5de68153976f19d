"""Static channel → provider registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import ProviderNotRegisteredError

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..ports.provider import IChannelProvider

logger = logging.getLogger("herald.providers")


class ProviderRegistry:
    """
    Explicit map of channel kind to the single provider serving it.

    Registration happens once at wiring time; there is no lookup by
    string key or reflection.
    """

    def __init__(self, providers: list[IChannelProvider] | None = None) -> None:
        self._providers: dict[NotificationChannel, IChannelProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: IChannelProvider) -> None:
        channel = provider.channel
        if channel in self._providers:
            raise ValueError(f"A provider is already registered for {channel.value}")
        self._providers[channel] = provider
        logger.debug("Registered %s for %s", type(provider).__name__, channel.value)

    def get(self, channel: NotificationChannel) -> IChannelProvider:
        try:
            return self._providers[channel]
        except KeyError:
            raise ProviderNotRegisteredError(channel.value) from None

    def channels(self) -> list[NotificationChannel]:
        return list(self._providers)

    def __contains__(self, channel: object) -> bool:
        return channel in self._providers
