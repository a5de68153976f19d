"""Tenant records, channel configuration and the caching config resolver."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from .exceptions import ConfigNotFoundError, TenantSuspendedError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .channel import NotificationChannel
    from .ports.store import IConfigurationStore

logger = logging.getLogger("herald.tenancy")

T = TypeVar("T")


class TenantStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class Tenant:
    """A tenant as seen by the engine (read-only)."""

    tenant_id: str
    status: TenantStatus = TenantStatus.ACTIVE
    channels: frozenset[NotificationChannel] = field(default_factory=frozenset)

    @property
    def is_active(self) -> bool:
        return self.status is TenantStatus.ACTIVE


@dataclass(frozen=True)
class ChannelConfig:
    """Per (tenant, channel) provider settings.

    ``credentials_handle`` is opaque to the engine; providers resolve it
    through the secret vault. ``rate_limit_per_minute`` of ``None`` means
    unlimited.
    """

    tenant_id: str
    channel: NotificationChannel
    provider: str
    credentials_handle: str | None = None
    rate_limit_per_minute: int | None = None
    options: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class _CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TenantConfigResolver:
    """
    Resolves tenants and channel configs through a TTL cache.

    Entries are immutable and replaced whole on refresh, so concurrent readers
    always see either the previous or the new entry, never a mix. Misses are
    not cached.
    """

    def __init__(
        self,
        store: IConfigurationStore,
        *,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._tenants: dict[str, _CacheEntry[Tenant]] = {}
        self._configs: dict[tuple[str, NotificationChannel], _CacheEntry[ChannelConfig]] = {}

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        """Return the tenant, or None if the store does not know it."""
        now = self._clock()
        cached = self._tenants.get(tenant_id)
        if cached is not None and cached.expires_at > now:
            return cached.value

        tenant = await self._store.get_tenant(tenant_id)
        if tenant is None:
            self._tenants.pop(tenant_id, None)
            return None
        self._tenants[tenant_id] = _CacheEntry(tenant, now + self._ttl)
        return tenant

    async def tenant_exists(self, tenant_id: str) -> bool:
        return await self.get_tenant(tenant_id) is not None

    async def resolve(self, tenant_id: str, channel: NotificationChannel) -> ChannelConfig:
        """Return the active config for (tenant, channel).

        Raises:
            TenantSuspendedError: The tenant is suspended.
            ConfigNotFoundError: Unknown tenant, or channel not configured.
        """
        tenant = await self.get_tenant(tenant_id)
        if tenant is None:
            raise ConfigNotFoundError(tenant_id, channel.value, f"Unknown tenant {tenant_id!r}")
        if not tenant.is_active:
            raise TenantSuspendedError(tenant_id, channel.value)
        if tenant.channels and channel not in tenant.channels:
            raise ConfigNotFoundError(tenant_id, channel.value)

        key = (tenant_id, channel)
        now = self._clock()
        cached = self._configs.get(key)
        if cached is not None and cached.expires_at > now:
            return cached.value

        config = await self._store.get_channel_config(tenant_id, channel)
        if config is None:
            self._configs.pop(key, None)
            raise ConfigNotFoundError(tenant_id, channel.value)
        self._configs[key] = _CacheEntry(config, now + self._ttl)
        logger.debug("Refreshed %s config for tenant %s", channel.value, tenant_id)
        return config

    def invalidate(self, tenant_id: str, channel: NotificationChannel | None = None) -> None:
        """Drop cached entries for a tenant (one channel, or all of them)."""
        if channel is not None:
            self._configs.pop((tenant_id, channel), None)
            return
        self._tenants.pop(tenant_id, None)
        for key in [k for k in self._configs if k[0] == tenant_id]:
            self._configs.pop(key, None)
