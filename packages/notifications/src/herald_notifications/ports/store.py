"""Configuration store port (tenants, channel configs, templates)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..channel import NotificationChannel
    from ..tenancy import ChannelConfig, Tenant
    from .renderer import NotificationTemplate


@runtime_checkable
class IConfigurationStore(Protocol):
    """
    Read-only view over tenant records, channel configs and templates.

    Persistence mechanics live outside the engine; ``None`` means not found.
    Implementations: ``InMemoryConfigurationStore``.
    """

    async def get_tenant(self, tenant_id: str) -> Tenant | None: ...

    async def get_channel_config(
        self,
        tenant_id: str,
        channel: NotificationChannel,
    ) -> ChannelConfig | None: ...

    async def get_template(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        name: str,
        language: str,
    ) -> NotificationTemplate | None:
        """Return the current version of the template, if any."""
        ...
