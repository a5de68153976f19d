"""IBackgroundWorker — lifecycle of a long-running delivery loop."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    """
    A loop that drains work until stopped.

    ``run_once`` processes whatever is ready right now and returns how many
    items it handled, without waiting; deployments without a resident
    process (cron, tests) drive the worker through it instead of ``start``.

    Used by: ``ChannelWorkerPool``.
    """

    @property
    def running(self) -> bool: ...

    async def start(self) -> None:
        """Spawn the loop; a second call while running is a no-op."""
        ...

    async def stop(self) -> None:
        """Cancel the loop and wait for in-flight items to settle."""
        ...

    async def run_once(self) -> int: ...
