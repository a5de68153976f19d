"""InMemoryTaskRepository — dict-backed task storage and idempotency index."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports.repository import ITaskRepository

if TYPE_CHECKING:
    from ..task import DeliveryTask


class InMemoryTaskRepository(ITaskRepository):
    """In-memory implementation of ``ITaskRepository``.

    Tasks are copied on the way in and out, so a caller mutating its own
    instance never changes stored state without a ``put``.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, DeliveryTask] = {}
        self._index: dict[str, str] = {}

    async def get(self, task_id: str) -> DeliveryTask | None:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task is not None else None

    async def put(self, task: DeliveryTask) -> None:
        self._tasks[task.task_id] = task.model_copy(deep=True)

    async def get_by_key(self, key: str) -> DeliveryTask | None:
        task_id = self._index.get(key)
        return await self.get(task_id) if task_id is not None else None

    async def compare_and_swap(self, key: str, expected: str | None, new: str | None) -> bool:
        # No await between check and write: atomic on the event loop.
        if self._index.get(key) != expected:
            return False
        if new is None:
            self._index.pop(key, None)
        else:
            self._index[key] = new
        return True

    async def list_by_request(self, request_id: str) -> list[DeliveryTask]:
        return sorted(
            (t.model_copy(deep=True) for t in self._tasks.values() if t.request_id == request_id),
            key=lambda t: t.created_at,
        )

    def __len__(self) -> int:
        return len(self._tasks)
