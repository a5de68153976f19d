"""In-memory collaborators for tests and single-process deployments."""

from __future__ import annotations

from .ledger import InMemoryStatusLedger
from .repository import InMemoryTaskRepository
from .secrets import InMemorySecretVault
from .sink import InMemoryDeadLetterSink
from .store import InMemoryConfigurationStore

__all__ = [
    "InMemoryConfigurationStore",
    "InMemoryDeadLetterSink",
    "InMemorySecretVault",
    "InMemoryStatusLedger",
    "InMemoryTaskRepository",
]
