"""Configuration management for Courier."""

import logging
import warnings
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Courier dispatcher settings.

    All settings can be overridden via environment variables with
    the COURIER_ prefix. For example, COURIER_REQUEST_TIMEOUT_SECONDS=10.

    Attributes:
        env: Deployment environment.
        request_timeout_seconds: Upper bound on a single transport call.
        probe_timeout_seconds: Timeout for the register-time HEAD probe.
        max_concurrent_deliveries: Concurrent transport calls across all targets.
        user_agent: User-Agent header sent with every delivery.
        default_signature_version: Version prefix used in signature headers.
        default_retry_delay_ms: Base retry delay when a policy leaves it unset.
        default_rate_limit_window_ms: Window length when a policy leaves it unset.
        notification_queue_size: Capacity of the notification queue.
        delivery_log_size: Entries kept per target by the in-memory delivery log.
        response_body_limit: Characters of response body kept on results.
        log_level: Logging level.
        log_format: Log output format.
    """

    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Transport
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Timeout for a single delivery request",
    )
    probe_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=60.0,
        description="Timeout for the URL probe run when test_on_register is set",
    )
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum concurrent transport calls",
    )
    user_agent: str = Field(
        default="Courier-Webhook/1.0",
        description="User-Agent header for outbound requests",
    )

    # Delivery policy defaults
    default_signature_version: str = Field(
        default="v1",
        min_length=1,
        description="Signature scheme version written into the signature header",
    )
    default_retry_delay_ms: int = Field(
        default=60_000,
        ge=0,
        description="Base retry delay used when a retry policy omits one",
    )
    default_rate_limit_window_ms: int = Field(
        default=60_000,
        gt=0,
        description="Rate-limit window used when a policy omits one",
    )

    # Observers
    notification_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Pending notifications held before new ones are dropped",
    )
    delivery_log_size: int = Field(
        default=100,
        ge=1,
        description="Delivery log entries retained per target",
    )
    response_body_limit: int = Field(
        default=1000,
        ge=0,
        description="Characters of response body kept on delivery results",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    model_config = {
        "env_prefix": "COURIER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def _warn_on_long_probe(self) -> "Settings":
        """Warn when the probe timeout exceeds the delivery timeout."""
        if self.probe_timeout_seconds > self.request_timeout_seconds:
            warnings.warn(
                f"probe_timeout_seconds ({self.probe_timeout_seconds}) exceeds "
                f"request_timeout_seconds ({self.request_timeout_seconds}).",
                UserWarning,
                stacklevel=2,
            )
            logger.warning(
                "Probe timeout %.1fs exceeds request timeout %.1fs",
                self.probe_timeout_seconds,
                self.request_timeout_seconds,
            )
        return self


# Global settings instance
settings = Settings()
