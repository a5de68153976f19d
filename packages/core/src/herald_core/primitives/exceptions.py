"""Root exception hierarchy for the Herald packages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .locking import ResourceIdentifier


class HeraldError(Exception):
    """Root exception for every Herald package."""


class DomainError(HeraldError):
    """Base class for domain rule violations."""


class NotFoundError(DomainError):
    """Raised when a requested resource does not exist."""


class ValidationError(HeraldError):
    """Raised when client input is malformed.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class InfrastructureError(HeraldError):
    """Base class for failures of external collaborators (stores, providers, sinks)."""


class ConcurrencyError(HeraldError):
    """Base class for lock contention and ownership conflicts."""


class LockAcquisitionError(ConcurrencyError):
    """Failed to acquire a lock within the allotted time."""

    def __init__(
        self,
        resource: ResourceIdentifier,
        timeout: float,
        reason: str | None = None,
    ) -> None:
        self.resource = resource
        self.timeout = timeout
        self.reason = reason

        msg = f"Failed to acquire lock on {resource} within {timeout}s"
        if reason:
            msg += f" - {reason}"

        super().__init__(msg)
