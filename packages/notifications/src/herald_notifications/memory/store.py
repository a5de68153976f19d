"""InMemoryConfigurationStore — dict-backed tenants, channel configs and templates."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from ..ports.renderer import NotificationTemplate
from ..ports.store import IConfigurationStore
from ..tenancy import ChannelConfig, Tenant, TenantStatus

if TYPE_CHECKING:
    from ..channel import NotificationChannel


class InMemoryConfigurationStore(IConfigurationStore):
    """In-memory implementation of ``IConfigurationStore``.

    Publishing a template for an existing key stores a new version; earlier
    versions stay readable through :meth:`get_template_version`.
    """

    def __init__(self) -> None:
        self._tenants: dict[str, Tenant] = {}
        self._configs: dict[tuple[str, NotificationChannel], ChannelConfig] = {}
        self._templates: dict[
            tuple[str, NotificationChannel, str, str], list[NotificationTemplate]
        ] = {}

    # -- seeding ----------------------------------------------------------

    def add_tenant(self, tenant: Tenant) -> Tenant:
        self._tenants[tenant.tenant_id] = tenant
        return tenant

    def set_tenant_status(self, tenant_id: str, status: TenantStatus) -> None:
        self._tenants[tenant_id] = dataclasses.replace(self._tenants[tenant_id], status=status)

    def add_channel_config(self, config: ChannelConfig) -> ChannelConfig:
        self._configs[(config.tenant_id, config.channel)] = config
        return config

    def remove_channel_config(self, tenant_id: str, channel: NotificationChannel) -> None:
        self._configs.pop((tenant_id, channel), None)

    def publish_template(self, template: NotificationTemplate) -> NotificationTemplate:
        """Store *template* as the next version for its key."""
        versions = self._templates.setdefault(template.key, [])
        published = dataclasses.replace(template, version=len(versions) + 1)
        versions.append(published)
        return published

    # -- IConfigurationStore ----------------------------------------------

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)

    async def get_channel_config(
        self,
        tenant_id: str,
        channel: NotificationChannel,
    ) -> ChannelConfig | None:
        return self._configs.get((tenant_id, channel))

    async def get_template(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        name: str,
        language: str,
    ) -> NotificationTemplate | None:
        versions = self._templates.get((tenant_id, channel, name, language))
        return versions[-1] if versions else None

    async def get_template_version(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        name: str,
        language: str,
        version: int,
    ) -> NotificationTemplate | None:
        versions = self._templates.get((tenant_id, channel, name, language), [])
        if 1 <= version <= len(versions):
            return versions[version - 1]
        return None
