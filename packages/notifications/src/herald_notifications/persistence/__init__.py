"""SQLAlchemy (async) adapters for the status ledger and dead-letter sink."""

from __future__ import annotations

from .ledger import SQLAlchemyStatusLedger
from .models import Base, DeadLetterModel, LedgerEntryModel
from .sink import SQLAlchemyDeadLetterSink

__all__ = [
    "Base",
    "DeadLetterModel",
    "LedgerEntryModel",
    "SQLAlchemyDeadLetterSink",
    "SQLAlchemyStatusLedger",
]
