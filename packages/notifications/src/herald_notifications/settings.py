"""Engine settings loaded from the environment."""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Notification engine configuration.

    Every field can be set through an environment variable with the
    ``HERALD_`` prefix, e.g. ``HERALD_MAX_ATTEMPTS=5``.

    Backoff:
        Delay after attempt k: min(max_delay, base_delay * 2^(k-1)) + U(0, jitter)

        With defaults (base=1s, max=60s, jitter=0.5s) and 3 attempts:
            After attempt 1: 1.0s - 1.5s
            After attempt 2: 2.0s - 2.5s
            After attempt 3: dead-lettered
    """

    model_config = SettingsConfigDict(
        env_prefix="HERALD_",
        env_file=".env",
        extra="ignore",
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum delivery attempts per task, including the first",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Backoff delay after the first failed attempt (seconds)",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Cap on the exponential part of the backoff (seconds)",
    )
    jitter_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Upper bound of the random delay added to each backoff (seconds)",
    )
    workers_per_channel: int = Field(
        default=4,
        ge=1,
        description="Concurrent workers in each channel pool",
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout of one provider call; exceeding it is a transient failure",
    )
    config_cache_ttl_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Time-to-live of cached tenant and channel configuration (seconds)",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Longest a worker waits on an empty queue before re-checking",
    )
    default_language: str = Field(
        default="en",
        min_length=1,
        description="Language used when a request names none, and template fallback",
    )
    fatal_retry_delay_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Requeue delay after a ledger or dead-letter write failure (seconds)",
    )

    @model_validator(mode="after")
    def _check_backoff(self) -> EngineSettings:
        if self.base_delay_seconds > self.max_delay_seconds:
            raise ValueError("base_delay_seconds must be <= max_delay_seconds")
        return self
