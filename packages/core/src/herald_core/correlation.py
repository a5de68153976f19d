"""Correlation ID management — ties intake, workers and ledger entries together."""

from __future__ import annotations

import contextlib
import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

# ContextVar for correlation/causation tracking across async boundaries.
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_causation_id: ContextVar[str | None] = ContextVar("causation_id", default=None)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in context."""
    _correlation_id.set(correlation_id)


def get_causation_id() -> str | None:
    """Get current causation ID from context."""
    return _causation_id.get()


def set_causation_id(causation_id: str | None) -> None:
    """Set causation ID in context."""
    _causation_id.set(causation_id)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


@contextlib.contextmanager
def correlation_scope(
    correlation_id: str | None,
    causation_id: str | None = None,
) -> Iterator[str | None]:
    """Bind correlation/causation IDs for the enclosed block, restoring the previous ones."""
    corr_token = _correlation_id.set(correlation_id)
    cause_token = _causation_id.set(causation_id)
    try:
        yield correlation_id
    finally:
        _causation_id.reset(cause_token)
        _correlation_id.reset(corr_token)
