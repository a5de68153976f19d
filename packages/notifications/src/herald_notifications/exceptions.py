"""Exception hierarchy for the notification engine."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from herald_core.primitives.exceptions import (
    DomainError,
    HeraldError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .task import DeliveryTask


class NotificationError(HeraldError):
    """Base exception for notification engine failures."""


# ── Intake ────────────────────────────────────────────────────────────


class ValidationErrorKind(str, Enum):
    """Why a raw request was rejected at intake."""

    MISSING_FIELD = "MissingField"
    UNKNOWN_CHANNEL = "UnknownChannel"
    EMPTY_RECIPIENTS = "EmptyRecipients"
    PAST_SCHEDULE = "PastSchedule"
    UNKNOWN_TENANT = "UnknownTenant"


class NotificationValidationError(ValidationError, NotificationError):
    """Raised synchronously at intake; no task is created."""

    def __init__(self, kind: ValidationErrorKind, field: str, message: str) -> None:
        self.kind = kind
        self.field = field
        self.message = message
        super().__init__({field: [message]})

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.field}: {self.message}"


# ── Per-channel configuration and rendering ───────────────────────────


class ConfigNotFoundError(NotFoundError, NotificationError):
    """Raised when a tenant has no active configuration for a channel."""

    def __init__(self, tenant_id: str, channel: str, reason: str | None = None) -> None:
        self.tenant_id = tenant_id
        self.channel = channel
        super().__init__(reason or f"No {channel} configuration for tenant {tenant_id!r}")


class TenantSuspendedError(ConfigNotFoundError):
    """Raised when the tenant exists but is suspended."""

    def __init__(self, tenant_id: str, channel: str) -> None:
        super().__init__(tenant_id, channel, f"Tenant {tenant_id!r} is suspended")


class TemplateRenderErrorKind(str, Enum):
    MISSING_VARIABLE = "MissingVariable"
    TEMPLATE_NOT_FOUND = "TemplateNotFound"
    INVALID_TEMPLATE = "InvalidTemplate"


class TemplateEngineError(NotificationError):
    """Raised by a template engine when a source cannot be compiled or rendered."""


class TemplateRenderError(DomainError, NotificationError):
    """Raised before any provider call when content cannot be rendered."""

    def __init__(
        self,
        kind: TemplateRenderErrorKind,
        template_name: str,
        missing: Iterable[str] = (),
        reason: str | None = None,
    ) -> None:
        self.kind = kind
        self.template_name = template_name
        self.missing = tuple(sorted(missing))
        if kind is TemplateRenderErrorKind.MISSING_VARIABLE:
            detail = f"missing required variables {', '.join(self.missing)}"
        elif kind is TemplateRenderErrorKind.INVALID_TEMPLATE:
            detail = reason or "template cannot be rendered"
        else:
            detail = "template not found"
        super().__init__(f"{kind.value}: {template_name}: {detail}")


# ── Delivery ──────────────────────────────────────────────────────────


class DeliveryError(InfrastructureError, NotificationError):
    """Base class for provider-side delivery failures."""

    def __init__(self, message: str, provider_reference: str | None = None) -> None:
        self.provider_reference = provider_reference
        super().__init__(message)


class TransientDeliveryError(DeliveryError):
    """Retryable provider or network failure."""


class PermanentDeliveryError(DeliveryError):
    """Non-retryable provider rejection (bad recipient, revoked credential...)."""


class ProviderNotRegisteredError(NotificationError):
    """Raised when no provider serves a channel."""

    def __init__(self, channel: str) -> None:
        self.channel = channel
        super().__init__(f"No provider registered for channel {channel!r}")


class RateLimitExceeded(NotificationError):
    """A claim would exceed the tenant's rate; the claim is deferred, not failed."""

    def __init__(self, tenant_id: str, channel: str, retry_after: float) -> None:
        self.tenant_id = tenant_id
        self.channel = channel
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for {tenant_id}/{channel}; retry in {retry_after:.2f}s"
        )


# ── Task lifecycle ────────────────────────────────────────────────────


class TaskStateError(DomainError, NotificationError):
    """Raised on a transition the status lattice does not allow."""


class TaskNotFoundError(NotFoundError, NotificationError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"DeliveryTask {task_id!r} not found")


class RequestNotFoundError(NotFoundError, NotificationError):
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Notification request {request_id!r} not found")


class LedgerWriteFailure(InfrastructureError, NotificationError):
    """The status ledger could not durably record a transition."""


class DeadLetterWriteFailure(InfrastructureError, NotificationError):
    """The dead-letter sink could not durably record a failed task."""


class RoutingError(InfrastructureError, NotificationError):
    """Some channels of a request could not be routed.

    Channels listed in ``routed`` were handled; resubmitting the request with
    the same request id only creates the missing ones.
    """

    def __init__(
        self,
        request_id: str,
        failures: dict[str, BaseException],
        routed: list[DeliveryTask],
    ) -> None:
        self.request_id = request_id
        self.failures = failures
        self.routed = routed
        channels = ", ".join(sorted(failures))
        super().__init__(f"Request {request_id}: routing failed for {channels}")
