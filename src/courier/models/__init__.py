"""Data models for Courier.

Targets:
    - TargetConfig: caller-supplied target description
    - Target: registered, immutable target record
    - Auth variants: BasicAuth, BearerAuth, ApiKeyAuth, OAuth2Auth
    - RetryPolicy, RateLimitPolicy, BackoffStrategy

Deliveries:
    - DeliveryContext, DeliveryResult, DeliveryOutcome
    - DeliveryStats, DeliveryLogEntry

Notifications:
    - Notification, NotificationKind
"""

from .base import generate_id, utc_now
from .delivery import (
    DeliveryContext,
    DeliveryLogEntry,
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStats,
)
from .notification import Notification, NotificationKind
from .target import (
    WILDCARD_EVENT,
    ApiKeyAuth,
    AuthDescriptor,
    BackoffStrategy,
    BasicAuth,
    BearerAuth,
    HttpMethod,
    OAuth2Auth,
    RateLimitPolicy,
    RetryPolicy,
    Target,
    TargetConfig,
    TargetFilter,
    TargetStatus,
)

__all__ = [
    "generate_id",
    "utc_now",
    # Targets
    "WILDCARD_EVENT",
    "ApiKeyAuth",
    "AuthDescriptor",
    "BackoffStrategy",
    "BasicAuth",
    "BearerAuth",
    "HttpMethod",
    "OAuth2Auth",
    "RateLimitPolicy",
    "RetryPolicy",
    "Target",
    "TargetConfig",
    "TargetFilter",
    "TargetStatus",
    # Deliveries
    "DeliveryContext",
    "DeliveryLogEntry",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStats",
    # Notifications
    "Notification",
    "NotificationKind",
]
