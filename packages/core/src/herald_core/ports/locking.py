"""ILockStrategy — protocol for mutual exclusion over named resources."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ..primitives.locking import ResourceIdentifier


@runtime_checkable
class ILockStrategy(Protocol):
    """
    Lock strategy protocol for check-then-act sections.

    Implementations can use Redis, database advisory locks, or in-process
    asyncio primitives (``InMemoryLockStrategy``).
    """

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
    ) -> str:
        """
        Acquire an exclusive lock for the given resource.

        Returns:
            A unique lock token required for release.

        Raises:
            LockAcquisitionError: If the lock cannot be acquired within the timeout.
        """
        ...

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        """Release a previously acquired lock."""
        ...


@contextlib.asynccontextmanager
async def hold(
    strategy: ILockStrategy,
    resource: ResourceIdentifier,
    *,
    timeout: float = 10.0,
) -> AsyncIterator[str]:
    """Hold *resource* for the duration of the ``async with`` block."""
    token = await strategy.acquire(resource, timeout=timeout)
    try:
        yield token
    finally:
        await strategy.release(resource, token)
