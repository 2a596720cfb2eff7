"""Courier: outbound event delivery.

Registers remote delivery targets and fans domain events out to them with
per-target rate limiting, HMAC request signing, retry with backoff and
delivery statistics.

Quick Start:
    from courier import Dispatcher

    async with Dispatcher() as dispatcher:
        target_id = await dispatcher.register(
            {
                "name": "orders",
                "url": "https://example.com/hooks/orders",
                "event": "order.created",
                "signature_enabled": True,
                "retry": {"max_attempts": 3, "strategy": "exponential", "base_delay_ms": 1000},
            }
        )
        results = await dispatcher.trigger("order.created", {"order_id": 42})

Observers subscribe to lifecycle notifications (registered, unregistered,
delivered, failed, rate-limited, retry-scheduled, retry-exhausted,
async-error) through Dispatcher.subscribe().
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Components
from .delivery_log import DeliveryLog
from .dispatcher import Dispatcher, auth_headers

# Exceptions
from .exceptions import (
    ConfigurationError,
    CourierError,
    NotFoundError,
    RateLimitedError,
    RetryExhaustedError,
    TransportError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)

# Models
from .models import (
    ApiKeyAuth,
    BackoffStrategy,
    BasicAuth,
    BearerAuth,
    DeliveryContext,
    DeliveryLogEntry,
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStats,
    Notification,
    NotificationKind,
    OAuth2Auth,
    RateLimitPolicy,
    RetryPolicy,
    Target,
    TargetConfig,
    TargetFilter,
    TargetStatus,
)
from .notifications import NotificationBus
from .ratelimit import RateLimiter
from .registry import TargetRegistry
from .retry import compute_retry_delay_ms
from .signing import Signer, canonical_json, parse_signature_header, verify_signature
from .stats import StatsTracker
from .transport import HttpxTransport, Transport, TransportRequest, TransportResponse

__all__ = [
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Components
    "DeliveryLog",
    "Dispatcher",
    "HttpxTransport",
    "NotificationBus",
    "RateLimiter",
    "Signer",
    "StatsTracker",
    "TargetRegistry",
    "Transport",
    "TransportRequest",
    "TransportResponse",
    "auth_headers",
    "canonical_json",
    "compute_retry_delay_ms",
    "parse_signature_header",
    "verify_signature",
    # Exceptions
    "ConfigurationError",
    "CourierError",
    "NotFoundError",
    "RateLimitedError",
    "RetryExhaustedError",
    "TransportError",
    "ValidationError",
    # Logging
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # Models
    "ApiKeyAuth",
    "BackoffStrategy",
    "BasicAuth",
    "BearerAuth",
    "DeliveryContext",
    "DeliveryLogEntry",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStats",
    "Notification",
    "NotificationKind",
    "OAuth2Auth",
    "RateLimitPolicy",
    "RetryPolicy",
    "Target",
    "TargetConfig",
    "TargetFilter",
    "TargetStatus",
]
