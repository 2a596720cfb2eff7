"""Courier exception hierarchy.

All exceptions inherit from CourierError for easy catching. Validation and
not-found errors surface synchronously to callers of the registry and
signer. Transport failures during a trigger are captured into delivery
results instead of being raised.
"""

from __future__ import annotations


class CourierError(Exception):
    """Base exception for all Courier errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    code: str = "courier_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(CourierError):
    """Invalid target configuration.

    Raised before anything is stored; a rejected registration or update
    never partially applies.

    Attributes:
        field: The field that failed validation.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(CourierError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "target", "secret").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class RateLimitedError(CourierError):
    """Admission denied by the per-target rate limiter.

    Never retried. The dispatcher records it as a rate-limited result rather
    than raising it.

    Attributes:
        target_id: Target whose window is full.
        retry_after_ms: Milliseconds until the current window closes.
    """

    code: str = "rate_limited"

    def __init__(self, target_id: str, retry_after_ms: int) -> None:
        self.target_id = target_id
        self.retry_after_ms = retry_after_ms
        super().__init__(f"Rate limit exceeded for {target_id}. Retry after {retry_after_ms}ms")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "target_id": self.target_id,
                "retry_after_ms": self.retry_after_ms,
                "message": self.message,
            }
        }


class TransportError(CourierError):
    """Network or HTTP failure while delivering.

    Attributes:
        status_code: HTTP status if a response was received.
        response_body: Response body if a response was received.
    """

    code: str = "transport_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "status_code": self.status_code,
                "message": self.message,
            }
        }


class RetryExhaustedError(CourierError):
    """A target kept failing until its retry policy ran out.

    Only ever reported through the retry-exhausted notification.

    Attributes:
        target_id: Target that exhausted its retries.
        attempts: Attempts made, including the first.
    """

    code: str = "retry_exhausted"

    def __init__(self, target_id: str, attempts: int) -> None:
        self.target_id = target_id
        self.attempts = attempts
        super().__init__(f"Delivery to {target_id} failed after {attempts} attempts")


class ConfigurationError(CourierError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"
