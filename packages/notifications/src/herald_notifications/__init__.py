"""herald-notifications — multi-tenant notification orchestration engine.

Validates intake requests, fans them out to one delivery task per channel,
renders tenant templates, dispatches through channel providers with bounded
retry and backoff, and records every status transition in an append-only
ledger. Tasks that cannot be delivered end in a dead-letter sink.
"""

from __future__ import annotations

from .channel import NotificationChannel
from .dead_letter import DeadLetterHandler, DeadLetterRecord
from .delivery import (
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryStatus,
    OutcomeKind,
    RecipientResult,
    RenderedNotification,
)
from .exceptions import (
    ConfigNotFoundError,
    DeadLetterWriteFailure,
    DeliveryError,
    LedgerWriteFailure,
    NotificationError,
    NotificationValidationError,
    PermanentDeliveryError,
    ProviderNotRegisteredError,
    RateLimitExceeded,
    RequestNotFoundError,
    RoutingError,
    TaskNotFoundError,
    TaskStateError,
    TemplateEngineError,
    TemplateRenderError,
    TemplateRenderErrorKind,
    TenantSuspendedError,
    TransientDeliveryError,
    ValidationErrorKind,
)
from .intake import RequestValidator
from .ledger import ChannelStatus, LedgerEntry, TransitionRecorder
from .memory import (
    InMemoryConfigurationStore,
    InMemoryDeadLetterSink,
    InMemorySecretVault,
    InMemoryStatusLedger,
    InMemoryTaskRepository,
)
from .ports import (
    IChannelProvider,
    IConfigurationStore,
    IDeadLetterSink,
    ISecretVault,
    IStatusLedger,
    ITaskRepository,
    ITemplateEngine,
    NotificationTemplate,
)
from .providers import ConsoleProvider, InMemoryProvider, ProviderRegistry, WebhookProvider
from .queue import ChannelQueues, DeliveryQueue
from .rate_limit import TokenBucketRateLimiter
from .request import NotificationRequest, RawNotificationRequest
from .retry import RetryPolicy, RetryScheduler
from .router import NotificationRouter
from .service import NotificationService
from .settings import EngineSettings
from .task import DeliveryTask, idempotency_key
from .template import JinjaEngine, PlaceholderEngine, TemplateRenderer
from .tenancy import ChannelConfig, Tenant, TenantConfigResolver, TenantStatus
from .worker import ChannelWorkerPool

__all__ = [
    "ChannelConfig",
    "ChannelQueues",
    "ChannelStatus",
    "ChannelWorkerPool",
    "ConfigNotFoundError",
    "ConsoleProvider",
    "DeadLetterHandler",
    "DeadLetterRecord",
    "DeadLetterWriteFailure",
    "DeliveryAttempt",
    "DeliveryError",
    "DeliveryOutcome",
    "DeliveryQueue",
    "DeliveryStatus",
    "DeliveryTask",
    "EngineSettings",
    "IChannelProvider",
    "IConfigurationStore",
    "IDeadLetterSink",
    "ISecretVault",
    "IStatusLedger",
    "ITaskRepository",
    "ITemplateEngine",
    "InMemoryConfigurationStore",
    "InMemoryDeadLetterSink",
    "InMemoryProvider",
    "InMemorySecretVault",
    "InMemoryStatusLedger",
    "InMemoryTaskRepository",
    "JinjaEngine",
    "LedgerEntry",
    "LedgerWriteFailure",
    "NotificationChannel",
    "NotificationError",
    "NotificationRequest",
    "NotificationRouter",
    "NotificationService",
    "NotificationTemplate",
    "NotificationValidationError",
    "OutcomeKind",
    "PermanentDeliveryError",
    "PlaceholderEngine",
    "ProviderNotRegisteredError",
    "ProviderRegistry",
    "RateLimitExceeded",
    "RawNotificationRequest",
    "RecipientResult",
    "RenderedNotification",
    "RequestNotFoundError",
    "RequestValidator",
    "RetryPolicy",
    "RetryScheduler",
    "RoutingError",
    "TaskNotFoundError",
    "TaskStateError",
    "TemplateEngineError",
    "TemplateRenderError",
    "TemplateRenderErrorKind",
    "TemplateRenderer",
    "Tenant",
    "TenantConfigResolver",
    "TenantStatus",
    "TokenBucketRateLimiter",
    "TransientDeliveryError",
    "TransitionRecorder",
    "ValidationErrorKind",
    "WebhookProvider",
    "idempotency_key",
]
