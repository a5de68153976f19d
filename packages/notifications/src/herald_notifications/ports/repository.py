"""Delivery task repository port, including the idempotency-key index."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..task import DeliveryTask


@runtime_checkable
class ITaskRepository(Protocol):
    """
    Plain storage for delivery tasks.

    ``compare_and_swap`` is the only primitive with atomicity requirements: it
    moves the idempotency index entry for *key* from *expected* to *new* task
    id, and must fail (return False) when the current value is not *expected*.
    Implementations: ``InMemoryTaskRepository``.
    """

    async def get(self, task_id: str) -> DeliveryTask | None: ...

    async def put(self, task: DeliveryTask) -> None: ...

    async def get_by_key(self, key: str) -> DeliveryTask | None: ...

    async def compare_and_swap(self, key: str, expected: str | None, new: str | None) -> bool: ...

    async def list_by_request(self, request_id: str) -> list[DeliveryTask]: ...
