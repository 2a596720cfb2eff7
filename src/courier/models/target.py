"""Delivery target models.

A target is a registered remote endpoint that receives event deliveries.
Callers describe one with TargetConfig; the registry turns it into an
immutable Target carrying identity, status and timestamps.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import utc_now

# Event filter value that matches every event name
WILDCARD_EVENT = "*"

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class TargetStatus(str, Enum):
    """Lifecycle status of a target."""

    ACTIVE = "active"
    DISABLED = "disabled"
    SUSPENDED = "suspended"


class BackoffStrategy(str, Enum):
    """How the delay before a retry grows with the attempt number."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class BasicAuth(BaseModel):
    """HTTP basic authentication."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["basic"] = "basic"
    username: str
    password: str


class BearerAuth(BaseModel):
    """Static bearer token."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["bearer"] = "bearer"
    token: str


class ApiKeyAuth(BaseModel):
    """API key sent in a named header."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["api_key"] = "api_key"
    header_name: str = "X-API-Key"
    key: str


class OAuth2Auth(BaseModel):
    """Pre-acquired OAuth2 access token."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["oauth2"] = "oauth2"
    access_token: str


AuthDescriptor = Annotated[
    BasicAuth | BearerAuth | ApiKeyAuth | OAuth2Auth,
    Field(discriminator="type"),
]


class RetryPolicy(BaseModel):
    """Retry behaviour for failed deliveries.

    Attributes:
        max_attempts: Total delivery attempts in a chain, including the first.
        strategy: Backoff strategy used to space retries.
        base_delay_ms: Base delay; the dispatcher default applies when unset.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: int = Field(ge=0, le=100, description="Maximum delivery attempts")
    strategy: BackoffStrategy = Field(
        default=BackoffStrategy.EXPONENTIAL, description="Backoff strategy"
    )
    base_delay_ms: int | None = Field(default=None, ge=0, description="Base delay in ms")


class RateLimitPolicy(BaseModel):
    """Fixed-window admission policy.

    Attributes:
        max_calls: Deliveries admitted per window.
        window_ms: Window length; the dispatcher default applies when unset.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_calls: int = Field(ge=0, description="Calls admitted per window")
    window_ms: int | None = Field(default=None, gt=0, description="Window length in ms")


class TargetConfig(BaseModel):
    """Caller-supplied description of a delivery target.

    Semantic checks (URL syntax, non-empty event filter, complete auth
    credentials) are done by the registry so that a rejected registration
    surfaces as a courier ValidationError.

    Attributes:
        name: Human-readable name.
        url: Absolute http(s) URL deliveries are sent to.
        event: Exact event name, or "*" for every event.
        method: HTTP method; GET sends the payload as query parameters.
        headers: Static headers added to every request.
        auth: Optional authentication descriptor.
        retry: Optional retry policy. No policy means no retries.
        rate_limit: Optional rate-limit policy. No policy means always admitted.
        signature_enabled: Whether requests carry an HMAC signature header.
        signature_version: Signature scheme version; dispatcher default when unset.
        signing_secret: Secret shared with the receiver. Handed to the signer at
            registration and never stored on the Target.
        test_on_register: Probe the URL with HEAD before accepting the target.
        transform: Optional function applied to the body before sending.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="", description="Human-readable name")
    url: str = Field(description="Destination URL")
    event: str = Field(description="Event name or '*'")
    method: HttpMethod = Field(default="POST", description="HTTP method")
    headers: dict[str, str] = Field(default_factory=dict, description="Static headers")
    auth: AuthDescriptor | None = Field(default=None, description="Authentication")
    retry: RetryPolicy | None = Field(default=None, description="Retry policy")
    rate_limit: RateLimitPolicy | None = Field(default=None, description="Rate-limit policy")
    signature_enabled: bool = Field(default=False, description="Sign outgoing payloads")
    signature_version: str | None = Field(default=None, description="Signature version")
    signing_secret: str | None = Field(
        default=None,
        exclude=True,
        repr=False,
        description="Shared secret to sign with; generated when omitted",
    )
    test_on_register: bool = Field(default=False, description="Probe URL at registration")
    transform: Callable[[Any], Any] | None = Field(
        default=None,
        exclude=True,
        description="Body transform applied before sending",
    )


class Target(TargetConfig):
    """A registered target. Immutable; the registry replaces it on update."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(description="Opaque identifier assigned at registration")
    status: TargetStatus = Field(default=TargetStatus.ACTIVE)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status is TargetStatus.ACTIVE

    def matches(self, event_name: str) -> bool:
        """Check if this target should receive the given event."""
        return self.is_active and self.event in (event_name, WILDCARD_EVENT)


class TargetFilter(BaseModel):
    """Optional filters for listing targets."""

    model_config = ConfigDict(extra="forbid")

    event: str | None = None
    status: TargetStatus | None = None

    def accepts(self, target: Target) -> bool:
        if self.event is not None and target.event != self.event:
            return False
        if self.status is not None and target.status is not self.status:
            return False
        return True


__all__ = [
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
]
