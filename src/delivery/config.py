"""Email delivery queue configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeliveryConfig(BaseSettings):
    """Configuration for the durable email delivery queue.

    All settings can be overridden via ``DELIVERY_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="DELIVERY_",
        case_sensitive=False,
        extra="ignore",
    )

    max_retries: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Send attempts before a record is marked failed",
    )
    send_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Upper bound on a single email send",
    )
    process_batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Pending records attempted per queue pass",
    )
    process_interval_seconds: float = Field(
        default=60.0,
        ge=1.0,
        description="Periodic queue pass interval while online",
    )
    backoff_base_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="First follow-up delay when records remain pending",
    )
    backoff_max_delay: float = Field(
        default=300.0,
        ge=1.0,
        description="Cap on the follow-up delay",
    )
    stale_sending_seconds: float = Field(
        default=300.0,
        ge=1.0,
        description="Age after which a 'sending' record is presumed abandoned",
    )
