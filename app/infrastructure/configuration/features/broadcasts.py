"""Broadcast feature settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class BroadcastSettings(FeatureSettings):
    """Broadcast dispatch configuration.

    Environment Variables:
        CRON_SECRET: Shared secret expected as a Bearer token on the cron trigger
        BROADCAST_MAX_ATTEMPTS: Attempts per channel before a transient failure
            becomes terminal (default: 3)
        BROADCAST_MAX_WORKERS: Concurrent provider calls per dispatch (5-20, default: 10)
        BROADCAST_SEND_TIMEOUT_SECONDS: Per provider call timeout (default: 15)
        BROADCAST_CLAIM_LEASE_SECONDS: How long a dispatcher run owns a `sending`
            broadcast before another run may resume it (default: 900)
        BROADCAST_STORE_BACKEND: 'dynamodb' or 'memory' (default: dynamodb)
        BROADCAST_SCHEDULER_ENABLED: Run the in-process scheduler (default: False)
        BROADCAST_SCHEDULER_INTERVAL_MINUTES: In-process scheduler period (default: 5)
        BROADCASTS_PER_DAY_LIMIT: Broadcasts a user may receive per day (default: 50)
        MESSAGE_CENTER_URL: Base URL of the message centre, used in links
        DEFAULT_SENDER_NAME: Sender shown when the author has no display name

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        max_attempts = settings.broadcasts.max_attempts
        ```
    """

    cron_secret: str = Field(default="", alias="CRON_SECRET")
    max_attempts: int = Field(default=3, alias="BROADCAST_MAX_ATTEMPTS", ge=1)
    max_workers: int = Field(default=10, alias="BROADCAST_MAX_WORKERS")
    send_timeout_seconds: float = Field(
        default=15.0, alias="BROADCAST_SEND_TIMEOUT_SECONDS", gt=0
    )
    claim_lease_seconds: int = Field(
        default=900, alias="BROADCAST_CLAIM_LEASE_SECONDS", ge=1
    )
    store_backend: str = Field(default="dynamodb", alias="BROADCAST_STORE_BACKEND")
    scheduler_enabled: bool = Field(default=False, alias="BROADCAST_SCHEDULER_ENABLED")
    scheduler_interval_minutes: int = Field(
        default=5, alias="BROADCAST_SCHEDULER_INTERVAL_MINUTES", ge=1
    )
    daily_limit: int = Field(default=50, alias="BROADCASTS_PER_DAY_LIMIT", ge=1)
    message_center_url: str = Field(
        default="http://127.0.0.1:8000", alias="MESSAGE_CENTER_URL"
    )
    default_sender_name: str = Field(
        default="The Team", alias="DEFAULT_SENDER_NAME"
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Keep the worker pool within 5-20."""
        if v < 5 or v > 20:
            raise ValueError(f"BROADCAST_MAX_WORKERS must be between 5 and 20: {v}")
        return v

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        """Ensure a supported store backend is selected."""
        backend = v.lower()
        if backend not in ("dynamodb", "memory"):
            raise ValueError(f"Unsupported BROADCAST_STORE_BACKEND: {v}")
        return backend
