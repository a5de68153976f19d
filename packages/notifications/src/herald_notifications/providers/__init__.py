"""Channel provider implementations and the channel → provider registry."""

from __future__ import annotations

from .console import ConsoleProvider
from .memory import InMemoryProvider, SentMessage
from .registry import ProviderRegistry
from .webhook import WebhookProvider

__all__ = [
    "ConsoleProvider",
    "InMemoryProvider",
    "ProviderRegistry",
    "SentMessage",
    "WebhookProvider",
]
