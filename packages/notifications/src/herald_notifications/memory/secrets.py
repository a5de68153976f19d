"""InMemorySecretVault — dict-backed credential handles."""

from __future__ import annotations

from ..ports.secrets import ISecretVault


class InMemorySecretVault(ISecretVault):
    def __init__(self, secrets: dict[str, str] | None = None) -> None:
        self._secrets = dict(secrets or {})

    def store(self, handle: str, secret: str) -> None:
        self._secrets[handle] = secret

    async def reveal(self, handle: str) -> str:
        return self._secrets[handle]
