"""Port definitions for the notification engine's external collaborators."""

from __future__ import annotations

from .ledger import IStatusLedger
from .provider import IChannelProvider
from .renderer import ITemplateEngine, NotificationTemplate
from .repository import ITaskRepository
from .secrets import ISecretVault
from .sink import IDeadLetterSink
from .store import IConfigurationStore

__all__ = [
    "IChannelProvider",
    "IConfigurationStore",
    "IDeadLetterSink",
    "ISecretVault",
    "IStatusLedger",
    "ITaskRepository",
    "ITemplateEngine",
    "NotificationTemplate",
]
