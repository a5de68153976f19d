"""Delivery status lattice, provider outcomes and attempt records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DeliveryStatus(str, Enum):
    """Lifecycle states of a delivery task.

    Transitions::

        PENDING_SCHEDULE → PENDING | CANCELLED
        PENDING          → RETRY_SCHEDULED | SENT | FAILED | CANCELLED
        RETRY_SCHEDULED  → PENDING | CANCELLED
        SENT, FAILED, CANCELLED are terminal
    """

    PENDING_SCHEDULE = "PENDING_SCHEDULE"
    PENDING = "PENDING"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    def can_move_to(self, target: DeliveryStatus) -> bool:
        return target in _ALLOWED[self]


_TERMINAL = frozenset({DeliveryStatus.SENT, DeliveryStatus.FAILED, DeliveryStatus.CANCELLED})

_ALLOWED: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING_SCHEDULE: frozenset(
        {DeliveryStatus.PENDING, DeliveryStatus.CANCELLED}
    ),
    DeliveryStatus.PENDING: frozenset(
        {
            DeliveryStatus.RETRY_SCHEDULED,
            DeliveryStatus.SENT,
            DeliveryStatus.FAILED,
            DeliveryStatus.CANCELLED,
        }
    ),
    DeliveryStatus.RETRY_SCHEDULED: frozenset(
        {DeliveryStatus.PENDING, DeliveryStatus.CANCELLED}
    ),
    DeliveryStatus.SENT: frozenset(),
    DeliveryStatus.FAILED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}


class OutcomeKind(str, Enum):
    """Classification of one provider call, or of one whole attempt."""

    DELIVERED = "Delivered"
    TRANSIENT_FAILURE = "TransientFailure"
    PERMANENT_FAILURE = "PermanentFailure"


@dataclass(frozen=True)
class DeliveryOutcome:
    """What a channel provider reports for one recipient."""

    kind: OutcomeKind
    provider_reference: str | None = None
    error: str | None = None

    @classmethod
    def delivered(cls, provider_reference: str | None = None) -> DeliveryOutcome:
        return cls(OutcomeKind.DELIVERED, provider_reference=provider_reference)

    @classmethod
    def transient(cls, error: str, provider_reference: str | None = None) -> DeliveryOutcome:
        return cls(OutcomeKind.TRANSIENT_FAILURE, provider_reference, error)

    @classmethod
    def permanent(cls, error: str, provider_reference: str | None = None) -> DeliveryOutcome:
        return cls(OutcomeKind.PERMANENT_FAILURE, provider_reference, error)


@dataclass(frozen=True)
class RecipientResult:
    """Outcome of one recipient within an attempt."""

    recipient: str
    outcome: DeliveryOutcome


@dataclass(frozen=True)
class DeliveryAttempt:
    """Immutable record of one dispatch try of a task."""

    number: int
    started_at: datetime
    finished_at: datetime
    outcome: OutcomeKind
    results: tuple[RecipientResult, ...] = ()
    error: str | None = None
    backoff_seconds: float | None = None

    @property
    def delivered_recipients(self) -> tuple[str, ...]:
        return tuple(
            r.recipient for r in self.results if r.outcome.kind is OutcomeKind.DELIVERED
        )

    @property
    def provider_references(self) -> dict[str, str]:
        return {
            r.recipient: r.outcome.provider_reference
            for r in self.results
            if r.outcome.provider_reference is not None
        }

    @classmethod
    def from_results(
        cls,
        number: int,
        started_at: datetime,
        results: list[RecipientResult],
        finished_at: datetime | None = None,
    ) -> DeliveryAttempt:
        """Aggregate per-recipient results: permanent beats transient beats delivered."""
        kinds = {r.outcome.kind for r in results}
        if OutcomeKind.PERMANENT_FAILURE in kinds:
            outcome = OutcomeKind.PERMANENT_FAILURE
        elif OutcomeKind.TRANSIENT_FAILURE in kinds:
            outcome = OutcomeKind.TRANSIENT_FAILURE
        else:
            outcome = OutcomeKind.DELIVERED

        errors = [
            f"{mask_recipient(r.recipient)}: {r.outcome.error}"
            for r in results
            if r.outcome.kind is not OutcomeKind.DELIVERED and r.outcome.error
        ]
        return cls(
            number=number,
            started_at=started_at,
            finished_at=finished_at or datetime.now(timezone.utc),
            outcome=outcome,
            results=tuple(results),
            error="; ".join(errors) or None,
        )


@dataclass(frozen=True)
class RenderedNotification:
    """Immutable rendered content ready for delivery."""

    body_text: str
    subject: str | None = None
    body_html: str | None = None
    template_name: str | None = None
    template_version: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)


def mask_recipient(recipient: str) -> str:
    """Shorten a recipient address for logs and error strings."""
    if len(recipient) <= 4:
        return "***"
    return f"{recipient[:2]}***{recipient[-2:]}"


