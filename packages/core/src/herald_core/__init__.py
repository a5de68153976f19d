"""herald-core — primitives shared by the Herald notification packages.

No infrastructure dependencies: exceptions, correlation context, locking.
"""

from __future__ import annotations

from .adapters.memory import InMemoryLockStrategy
from .correlation import (
    correlation_scope,
    generate_correlation_id,
    get_causation_id,
    get_correlation_id,
    set_causation_id,
    set_correlation_id,
)
from .ports import IBackgroundWorker, ILockStrategy
from .primitives import (
    ConcurrencyError,
    DomainError,
    HeraldError,
    InfrastructureError,
    LockAcquisitionError,
    NotFoundError,
    ResourceIdentifier,
    ValidationError,
)

__all__ = [
    "ConcurrencyError",
    "DomainError",
    "HeraldError",
    "IBackgroundWorker",
    "ILockStrategy",
    "InMemoryLockStrategy",
    "InfrastructureError",
    "LockAcquisitionError",
    "NotFoundError",
    "ResourceIdentifier",
    "ValidationError",
    "correlation_scope",
    "generate_correlation_id",
    "get_causation_id",
    "get_correlation_id",
    "set_causation_id",
    "set_correlation_id",
]
