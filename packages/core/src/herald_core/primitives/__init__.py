"""Primitives: exceptions, lockable resource identifiers."""

from __future__ import annotations

from .exceptions import (
    ConcurrencyError,
    DomainError,
    HeraldError,
    InfrastructureError,
    LockAcquisitionError,
    NotFoundError,
    ValidationError,
)
from .locking import ResourceIdentifier

__all__ = [
    "ConcurrencyError",
    "DomainError",
    "HeraldError",
    "InfrastructureError",
    "LockAcquisitionError",
    "NotFoundError",
    "ResourceIdentifier",
    "ValidationError",
]
