"""Channel kinds and their parsing from client input."""

from __future__ import annotations

from enum import Enum


class NotificationChannel(str, Enum):
    """Supported notification channels."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"

    @classmethod
    def parse(cls, value: str | NotificationChannel) -> NotificationChannel:
        """Parse a channel from its value or name, case-insensitively.

        Raises:
            ValueError: If the value names no known channel.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown channel {value!r}")
