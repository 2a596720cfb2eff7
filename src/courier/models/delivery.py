"""Delivery models: caller context, per-attempt results, stats and log entries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now


class DeliveryOutcome(str, Enum):
    """State of a single delivery attempt.

    PENDING moves to RATE_LIMITED, DELIVERED or FAILED. A FAILED attempt
    schedules another PENDING attempt until the retry policy runs out,
    at which point the chain ends as EXHAUSTED.
    """

    PENDING = "pending"
    RATE_LIMITED = "rate_limited"
    DELIVERED = "delivered"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


class DeliveryContext(BaseModel):
    """Caller identity propagated as request headers.

    Attributes:
        user_id: Calling user, sent as X-User-ID.
        company_id: Tenant, sent as X-Company-ID.
        session_id: Session, sent as X-Session-ID.
        correlation_id: Trace token, sent as X-Correlation-ID.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_id: str | None = None
    company_id: str | None = None
    session_id: str | None = None
    correlation_id: str | None = None

    def headers(self) -> dict[str, str]:
        """Headers derived from this context; unset fields are omitted."""
        pairs = {
            "X-User-ID": self.user_id,
            "X-Company-ID": self.company_id,
            "X-Session-ID": self.session_id,
            "X-Correlation-ID": self.correlation_id,
        }
        return {name: value for name, value in pairs.items() if value is not None}


class DeliveryResult(BaseModel):
    """Outcome of one delivery attempt to one target.

    Attributes:
        id: Unique identifier for this attempt.
        target_id: Target the attempt was for.
        event: Event name being delivered.
        outcome: Final state of the attempt.
        success: True only when outcome is DELIVERED.
        attempt: Attempt number within the retry chain (1-indexed).
        status_code: HTTP status, if a response was received.
        response_body: Response body, truncated.
        error: Error message when the attempt did not succeed.
        duration_ms: Time spent in the transport call.
        timestamp: When the attempt finished.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    target_id: str
    event: str
    outcome: DeliveryOutcome
    attempt: int = Field(default=1, ge=1)
    status_code: int | None = None
    response_body: str | None = None
    error: str | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def success(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED


class DeliveryStats(BaseModel):
    """Running counters for one target.

    Attributes:
        target_id: Target these counters belong to.
        total_calls: Attempts recorded.
        success_count: Successful attempts.
        failure_count: Failed attempts.
        total_duration_ms: Sum of attempt durations.
        average_duration_ms: total_duration_ms / total_calls.
        last_called: When the last attempt was recorded.
    """

    model_config = ConfigDict(extra="forbid")

    target_id: str
    total_calls: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_duration_ms: float = 0.0
    average_duration_ms: float = 0.0
    last_called: datetime | None = None


class DeliveryLogEntry(BaseModel):
    """Audit record of a delivery attempt kept by the in-memory delivery log."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("log"))
    target_id: str
    event: str
    success: bool
    attempt: int = 1
    status_code: int | None = None
    duration_ms: float = 0.0
    error: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


__all__ = [
    "DeliveryContext",
    "DeliveryLogEntry",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStats",
]
