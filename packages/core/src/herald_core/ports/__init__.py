"""Port definitions shared across packages."""

from __future__ import annotations

from .background_worker import IBackgroundWorker
from .locking import ILockStrategy

__all__ = ["IBackgroundWorker", "ILockStrategy"]
