"""DeliveryTask — the unit of work for one (request, channel) pair."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .channel import NotificationChannel
from .delivery import DeliveryAttempt, DeliveryStatus, RenderedNotification
from .exceptions import TaskStateError
from .request import NotificationRequest


def idempotency_key(tenant_id: str, request_id: str, channel: NotificationChannel) -> str:
    """Deterministic key for one logical (tenant, request, channel) delivery."""
    raw = "\x1f".join((tenant_id, request_id, channel.value)).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryTask(BaseModel):
    """Deliver one rendered notification to a recipient list over one channel.

    Status changes go through the transition methods, which enforce the
    :class:`DeliveryStatus` lattice and raise :class:`TaskStateError` otherwise.
    Callers never persist a task directly; ``TransitionRecorder`` writes the
    ledger entry first and then stores the new state.
    """

    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    idempotency_key: str
    request_id: str
    tenant_id: str
    channel: NotificationChannel
    recipients: list[str]
    template_name: str
    language: str = "en"
    variables: dict[str, str] = Field(default_factory=dict)
    scheduled_time: datetime | None = None

    status: DeliveryStatus = DeliveryStatus.PENDING
    attempt_count: int = 0
    next_attempt_at: datetime | None = None
    last_error: str | None = None
    attempts: list[DeliveryAttempt] = Field(default_factory=list)
    delivered_recipients: list[str] = Field(default_factory=list)
    rendered: RenderedNotification | None = None
    cancel_requested: bool = False
    pending_dead_letter: str | None = None
    dead_letter_recorded: bool = False

    correlation_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    # -- factory ----------------------------------------------------------

    @classmethod
    def for_channel(
        cls,
        request: NotificationRequest,
        channel: NotificationChannel,
        *,
        now: datetime | None = None,
        correlation_id: str | None = None,
    ) -> DeliveryTask:
        """Create the task for *channel*; future-dated requests start in PENDING_SCHEDULE."""
        now = now or _utcnow()
        scheduled = request.scheduled_time is not None and request.scheduled_time > now
        return cls(
            idempotency_key=idempotency_key(request.tenant_id, request.request_id, channel),
            request_id=request.request_id,
            tenant_id=request.tenant_id,
            channel=channel,
            recipients=list(request.recipients),
            template_name=request.template_name,
            language=request.language,
            variables=dict(request.variables),
            scheduled_time=request.scheduled_time,
            status=DeliveryStatus.PENDING_SCHEDULE if scheduled else DeliveryStatus.PENDING,
            next_attempt_at=request.scheduled_time if scheduled else now,
            correlation_id=correlation_id or request.request_id,
            created_at=now,
            updated_at=now,
        )

    # -- queries ----------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def remaining_recipients(self) -> list[str]:
        delivered = set(self.delivered_recipients)
        return [r for r in self.recipients if r not in delivered]

    # -- transitions ------------------------------------------------------

    def _move(self, target: DeliveryStatus) -> None:
        if not self.status.can_move_to(target):
            raise TaskStateError(
                f"Cannot move task {self.task_id} from {self.status.value} to {target.value}"
            )
        self.status = target
        self.updated_at = _utcnow()

    def promote(self) -> None:
        """PENDING_SCHEDULE | RETRY_SCHEDULED → PENDING."""
        if self.status not in (DeliveryStatus.PENDING_SCHEDULE, DeliveryStatus.RETRY_SCHEDULED):
            raise TaskStateError(f"Cannot promote task in {self.status.value} state")
        self._move(DeliveryStatus.PENDING)

    def record_attempt(self, attempt: DeliveryAttempt) -> None:
        """Append an attempt; attempts are strictly ordered by number."""
        if attempt.number != self.attempt_count + 1:
            raise TaskStateError(
                f"Attempt {attempt.number} out of order (task has {self.attempt_count})"
            )
        self.attempts.append(attempt)
        self.attempt_count = attempt.number
        for recipient in attempt.delivered_recipients:
            if recipient not in self.delivered_recipients:
                self.delivered_recipients.append(recipient)
        if attempt.error:
            self.last_error = attempt.error

    def mark_sent(self) -> None:
        """PENDING → SENT."""
        self._move(DeliveryStatus.SENT)
        self.next_attempt_at = None

    def schedule_retry(self, next_attempt_at: datetime) -> None:
        """PENDING → RETRY_SCHEDULED."""
        self._move(DeliveryStatus.RETRY_SCHEDULED)
        self.next_attempt_at = next_attempt_at

    def mark_failed(self, reason: str) -> None:
        """PENDING → FAILED (dead-lettered)."""
        self._move(DeliveryStatus.FAILED)
        self.last_error = reason
        self.next_attempt_at = None
        self.pending_dead_letter = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        """Any non-terminal state → CANCELLED."""
        self._move(DeliveryStatus.CANCELLED)
        self.last_error = reason
        self.next_attempt_at = None
