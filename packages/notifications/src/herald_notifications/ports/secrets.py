"""Secret vault port."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ISecretVault(Protocol):
    """Resolves an opaque credential handle to the secret it stands for."""

    async def reveal(self, handle: str) -> str:
        """Return the secret for *handle*; raise ``KeyError`` if unknown."""
        ...
