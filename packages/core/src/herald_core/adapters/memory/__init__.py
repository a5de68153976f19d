"""In-memory adapters for testing and single-process deployments."""

from __future__ import annotations

from .locking import InMemoryLockStrategy

__all__ = ["InMemoryLockStrategy"]
