"""Template definition and template engine port."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ..channel import NotificationChannel


@dataclass(frozen=True)
class NotificationTemplate:
    """Immutable template version.

    Unique per (tenant_id, channel, name, language); publishing a change
    means storing a new instance with a higher ``version``.
    """

    tenant_id: str
    channel: NotificationChannel
    name: str
    body_template: str
    subject_template: str | None = None
    language: str = "en"
    required_variables: frozenset[str] = field(default_factory=frozenset)
    version: int = 1

    @property
    def key(self) -> tuple[str, NotificationChannel, str, str]:
        return (self.tenant_id, self.channel, self.name, self.language)


@runtime_checkable
class ITemplateEngine(Protocol):
    """Protocol for substituting variables into one template string.

    Implementations must be pure: the same source and variables always
    produce the same output.
    """

    def substitute(self, source: str, variables: Mapping[str, str]) -> str:
        """Return *source* with placeholders replaced."""
        ...
