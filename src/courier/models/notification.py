"""Lifecycle notifications published by the registry and dispatcher."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utc_now


class NotificationKind(str, Enum):
    """Kinds of lifecycle notification observers can subscribe to."""

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    DELIVERED = "delivered"
    FAILED = "failed"
    RATE_LIMITED = "rate-limited"
    RETRY_SCHEDULED = "retry-scheduled"
    RETRY_EXHAUSTED = "retry-exhausted"
    ASYNC_ERROR = "async-error"


class Notification(BaseModel):
    """A single lifecycle notification.

    Attributes:
        id: Unique identifier for this notification.
        kind: What happened.
        target_id: Target involved, when there is one.
        event: Event name involved, when there is one.
        data: Kind-specific details (url, duration_ms, error, attempt, ...).
        timestamp: When the notification was created.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: generate_id("ntf"))
    kind: NotificationKind
    target_id: str | None = None
    event: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


__all__ = ["Notification", "NotificationKind"]
