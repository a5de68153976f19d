"""Per (tenant, channel) token buckets enforced at the claim boundary."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import RateLimitExceeded

if TYPE_CHECKING:
    from collections.abc import Callable

    from .channel import NotificationChannel


@dataclass
class _Bucket:
    capacity: float
    tokens: float
    refill_per_second: float
    updated_at: float


class TokenBucketRateLimiter:
    """
    Token bucket keyed by (tenant, channel).

    A bucket holds up to one minute's allowance and refills continuously. A
    limit of ``None`` means unlimited. A changed limit replaces the bucket.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[tuple[str, NotificationChannel], _Bucket] = {}

    def acquire(
        self,
        tenant_id: str,
        channel: NotificationChannel,
        per_minute: int | None,
    ) -> None:
        """Take one token.

        Raises:
            RateLimitExceeded: No token is available; ``retry_after`` says
                when the next one will be.
        """
        if per_minute is None or per_minute <= 0:
            return
        now = self._clock()
        key = (tenant_id, channel)
        bucket = self._buckets.get(key)
        if bucket is None or bucket.capacity != per_minute:
            bucket = _Bucket(float(per_minute), float(per_minute), per_minute / 60.0, now)
            self._buckets[key] = bucket

        elapsed = max(0.0, now - bucket.updated_at)
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_per_second)
        bucket.updated_at = now
        if bucket.tokens >= 1.0:
            bucket.tokens -= 1.0
            return
        retry_after = (1.0 - bucket.tokens) / bucket.refill_per_second
        raise RateLimitExceeded(tenant_id, channel.value, retry_after)

    def reset(self, tenant_id: str | None = None) -> None:
        if tenant_id is None:
            self._buckets.clear()
            return
        for key in [k for k in self._buckets if k[0] == tenant_id]:
            del self._buckets[key]
