"""Request validation and normalization at intake."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from .channel import NotificationChannel
from .exceptions import NotificationValidationError, ValidationErrorKind
from .request import NotificationRequest, RawNotificationRequest

if TYPE_CHECKING:
    from collections.abc import Callable

    from .tenancy import TenantConfigResolver

logger = logging.getLogger("herald.intake")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _missing(field: str) -> NotificationValidationError:
    return NotificationValidationError(ValidationErrorKind.MISSING_FIELD, field, "is required")


class RequestValidator:
    """
    Checks the shape of a raw request and produces a ``NotificationRequest``.

    Tenant existence is delegated to the ``TenantConfigResolver``; the
    validator never touches tenant storage itself. Fails synchronously with
    ``NotificationValidationError``; nothing is created on failure.
    """

    def __init__(
        self,
        resolver: TenantConfigResolver,
        *,
        default_language: str = "en",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._resolver = resolver
        self._default_language = default_language
        self._clock = clock

    async def validate(
        self,
        raw: RawNotificationRequest | Mapping[str, Any],
    ) -> NotificationRequest:
        """Validate *raw* and return the normalized, immutable request."""
        payload = self.parse(raw)

        tenant_id = (payload.tenant_id or "").strip()
        if not tenant_id:
            raise _missing("tenant_id")

        template_name = (payload.template_name or "").strip()
        if not template_name:
            raise _missing("template_name")

        channels = self._parse_channels(payload.channels)
        recipients = self._parse_recipients(payload.recipients)

        scheduled_time = payload.scheduled_time
        if scheduled_time is not None:
            if scheduled_time.tzinfo is None:
                scheduled_time = scheduled_time.replace(tzinfo=timezone.utc)
            if scheduled_time < self._clock():
                raise NotificationValidationError(
                    ValidationErrorKind.PAST_SCHEDULE,
                    "scheduled_time",
                    f"{scheduled_time.isoformat()} is in the past",
                )

        if not await self._resolver.tenant_exists(tenant_id):
            raise NotificationValidationError(
                ValidationErrorKind.UNKNOWN_TENANT, "tenant_id", f"unknown tenant {tenant_id!r}"
            )

        data: dict[str, Any] = {
            "tenant_id": tenant_id,
            "recipients": recipients,
            "channels": channels,
            "template_name": template_name,
            "language": (payload.language or "").strip() or self._default_language,
            "variables": {str(k): "" if v is None else str(v) for k, v in payload.variables.items()},
            "scheduled_time": scheduled_time,
            "received_at": self._clock(),
        }
        client_request_id = (payload.client_request_id or "").strip()
        if client_request_id:
            data["request_id"] = client_request_id

        request = NotificationRequest(**data)
        logger.info(
            "Accepted request %s for tenant %s on %s",
            request.request_id,
            tenant_id,
            ",".join(c.value for c in channels),
        )
        return request

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def parse(raw: RawNotificationRequest | Mapping[str, Any]) -> RawNotificationRequest:
        """Read *raw* into the intake schema without checking required fields."""
        if isinstance(raw, RawNotificationRequest):
            return raw
        try:
            return RawNotificationRequest.model_validate(dict(raw))
        except PydanticValidationError as err:
            first = err.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or "__root__"
            # Malformed values are reported against the field that carries them.
            raise NotificationValidationError(
                ValidationErrorKind.MISSING_FIELD,
                field,
                first.get("msg", "invalid value"),
            ) from err

    @staticmethod
    def _parse_channels(values: list[str] | None) -> tuple[NotificationChannel, ...]:
        if not values:
            raise _missing("channels")
        channels: list[NotificationChannel] = []
        for value in values:
            try:
                channel = NotificationChannel.parse(value)
            except ValueError as err:
                raise NotificationValidationError(
                    ValidationErrorKind.UNKNOWN_CHANNEL, "channels", f"unknown channel {value!r}"
                ) from err
            if channel not in channels:
                channels.append(channel)
        return tuple(channels)

    @staticmethod
    def _parse_recipients(values: list[str] | None) -> tuple[str, ...]:
        recipients: list[str] = []
        for value in values or []:
            cleaned = str(value).strip()
            if cleaned and cleaned not in recipients:
                recipients.append(cleaned)
        if not recipients:
            raise NotificationValidationError(
                ValidationErrorKind.EMPTY_RECIPIENTS, "recipients", "at least one recipient is required"
            )
        return tuple(recipients)
