"""Unit tests for Courier data models."""

import pytest
from pydantic import ValidationError

from courier.models import (
    ApiKeyAuth,
    BearerAuth,
    DeliveryContext,
    DeliveryOutcome,
    DeliveryResult,
    Notification,
    NotificationKind,
    RateLimitPolicy,
    RetryPolicy,
    Target,
    TargetConfig,
    TargetStatus,
    generate_id,
)


class TestGenerateId:
    """Tests for id generation."""

    def test_prefix(self):
        assert generate_id("whk").startswith("whk_")

    def test_unique(self):
        assert len({generate_id("dlv") for _ in range(100)}) == 100


class TestTargetConfig:
    """Tests for TargetConfig model."""

    def test_defaults(self):
        config = TargetConfig(url="https://example.com", event="order.created")
        assert config.method == "POST"
        assert config.headers == {}
        assert config.auth is None
        assert config.retry is None
        assert config.rate_limit is None
        assert config.signature_enabled is False
        assert config.test_on_register is False

    def test_auth_discriminator(self):
        config = TargetConfig(
            url="https://example.com",
            event="e",
            auth={"type": "api_key", "key": "k"},
        )
        assert isinstance(config.auth, ApiKeyAuth)
        assert config.auth.header_name == "X-API-Key"

    def test_unknown_auth_type_rejected(self):
        with pytest.raises(ValidationError):
            TargetConfig(url="https://example.com", event="e", auth={"type": "digest"})

    def test_secret_excluded_from_dump(self):
        """The signing secret should never be serialized."""
        config = TargetConfig(url="https://example.com", event="e", signing_secret="x" * 32)
        assert "signing_secret" not in config.model_dump()
        assert "x" * 32 not in repr(config)


class TestPolicies:
    """Tests for retry and rate-limit policies."""

    def test_retry_bounds(self):
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=-1)
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=101)

    def test_rate_limit_window_positive(self):
        with pytest.raises(ValidationError):
            RateLimitPolicy(max_calls=1, window_ms=0)

    def test_policies_frozen(self):
        policy = RetryPolicy(max_attempts=3)
        with pytest.raises(ValidationError):
            policy.max_attempts = 5


class TestTarget:
    """Tests for Target model."""

    def make(self, **overrides) -> Target:
        fields = {"id": "whk_1", "url": "https://example.com", "event": "order.created"}
        fields.update(overrides)
        return Target(**fields)

    def test_matches_exact_event(self):
        target = self.make()
        assert target.matches("order.created")
        assert not target.matches("order.updated")

    def test_matches_wildcard(self):
        target = self.make(event="*")
        assert target.matches("anything")

    def test_disabled_never_matches(self):
        target = self.make(status=TargetStatus.DISABLED)
        assert not target.is_active
        assert not target.matches("order.created")

    def test_frozen(self):
        target = self.make()
        with pytest.raises(ValidationError):
            target.url = "https://other.example.com"

    def test_auth_frozen(self):
        auth = BearerAuth(token="t")
        with pytest.raises(ValidationError):
            auth.token = "u"


class TestDeliveryModels:
    """Tests for delivery result and context models."""

    def test_success_follows_outcome(self):
        delivered = DeliveryResult(target_id="whk_1", event="e", outcome=DeliveryOutcome.DELIVERED)
        limited = DeliveryResult(target_id="whk_1", event="e", outcome=DeliveryOutcome.RATE_LIMITED)
        assert delivered.success is True
        assert limited.success is False
        assert delivered.id.startswith("dlv_")

    def test_context_headers_omit_unset(self):
        context = DeliveryContext(user_id="u1", correlation_id="c1")
        assert context.headers() == {"X-User-ID": "u1", "X-Correlation-ID": "c1"}

    def test_notification_kind_values(self):
        assert NotificationKind.RATE_LIMITED.value == "rate-limited"
        assert NotificationKind.RETRY_EXHAUSTED.value == "retry-exhausted"

    def test_notification_defaults(self):
        notification = Notification(kind=NotificationKind.REGISTERED)
        assert notification.id.startswith("ntf_")
        assert notification.data == {}
        assert notification.target_id is None
