"""Raw intake payloads and the normalized, immutable NotificationRequest."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .channel import NotificationChannel


class RawNotificationRequest(BaseModel):
    """Request as received from a caller, before validation.

    Everything is optional here so that missing fields are reported as
    ``MissingField`` by the validator rather than as a schema error.
    Accepts both camelCase (wire) and snake_case names.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tenant_id: str | None = Field(default=None, alias="tenantId")
    recipients: list[str] | None = None
    channels: list[str] | None = None
    template_name: str | None = Field(default=None, alias="templateName")
    language: str | None = None
    variables: dict[str, Any] = Field(default_factory=dict)
    client_request_id: str | None = Field(default=None, alias="clientRequestId")
    scheduled_time: datetime | None = Field(default=None, alias="scheduledTime")


class NotificationRequest(BaseModel):
    """Validated request. Immutable after intake."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: str
    recipients: tuple[str, ...]
    channels: tuple[NotificationChannel, ...]
    template_name: str
    language: str = "en"
    variables: dict[str, str] = Field(default_factory=dict)
    scheduled_time: datetime | None = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_time is not None
