"""Tests for Courier exception hierarchy."""

import pytest

from courier.exceptions import (
    ConfigurationError,
    CourierError,
    NotFoundError,
    RateLimitedError,
    RetryExhaustedError,
    TransportError,
    ValidationError,
)


class TestCourierError:
    """Tests for the base CourierError class."""

    def test_error_message(self):
        """Should store and return message."""
        error = CourierError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_error_code(self):
        """Should have default error code."""
        error = CourierError("test")
        assert error.code == "courier_error"

    def test_to_dict(self):
        """Should convert to API-friendly dict."""
        error = CourierError("Something went wrong")
        result = error.to_dict()
        assert result == {
            "error": {
                "code": "courier_error",
                "message": "Something went wrong",
            }
        }

    def test_inheritance(self):
        """All custom exceptions should inherit from CourierError."""
        exceptions = [
            ValidationError("field", "invalid"),
            NotFoundError("target", "id"),
            RateLimitedError("whk_1", 1000),
            TransportError("failed"),
            RetryExhaustedError("whk_1", 3),
            ConfigurationError("missing"),
        ]
        for exc in exceptions:
            assert isinstance(exc, CourierError)
            assert isinstance(exc, Exception)


class TestValidationError:
    """Tests for ValidationError."""

    def test_field_and_message(self):
        """Should store field and message."""
        error = ValidationError("url", "URL is required")
        assert error.field == "url"
        assert error.message == "url: URL is required"

    def test_error_code(self):
        error = ValidationError("field", "message")
        assert error.code == "validation_error"

    def test_to_dict_includes_field(self):
        """Should include field in dict representation."""
        result = ValidationError("event", "event filter is required").to_dict()
        assert result["error"]["code"] == "validation_error"
        assert result["error"]["field"] == "event"


class TestNotFoundError:
    """Tests for NotFoundError."""

    def test_resource_info(self):
        """Should store resource type and ID."""
        error = NotFoundError("target", "whk_123")
        assert error.resource_type == "target"
        assert error.resource_id == "whk_123"
        assert error.message == "target not found: whk_123"

    def test_to_dict_includes_resource_info(self):
        result = NotFoundError("secret", "whk_456").to_dict()
        assert result["error"]["code"] == "not_found"
        assert result["error"]["resource_type"] == "secret"
        assert result["error"]["resource_id"] == "whk_456"


class TestRateLimitedError:
    """Tests for RateLimitedError."""

    def test_retry_after(self):
        error = RateLimitedError("whk_1", 1500)
        assert error.target_id == "whk_1"
        assert error.retry_after_ms == 1500
        assert "1500ms" in error.message
        assert error.code == "rate_limited"

    def test_to_dict_includes_retry_after(self):
        result = RateLimitedError("whk_1", 1500).to_dict()
        assert result["error"]["retry_after_ms"] == 1500


class TestTransportError:
    """Tests for TransportError."""

    def test_without_response(self):
        error = TransportError("Connection refused")
        assert error.status_code is None
        assert error.response_body is None
        assert error.code == "transport_error"

    def test_with_response(self):
        error = TransportError("HTTP 502", status_code=502, response_body="Bad Gateway")
        assert error.status_code == 502
        assert error.response_body == "Bad Gateway"
        assert error.to_dict()["error"]["status_code"] == 502


class TestSimpleErrors:
    """Tests for errors carrying only a message."""

    def test_retry_exhausted(self):
        error = RetryExhaustedError("whk_1", 4)
        assert error.attempts == 4
        assert error.code == "retry_exhausted"
        assert "4 attempts" in error.message

    def test_configuration_error(self):
        error = ConfigurationError("transport missing")
        assert error.code == "configuration_error"

    def test_raise_and_catch_base(self):
        """Specific errors should be catchable as CourierError."""
        with pytest.raises(CourierError):
            raise TransportError("boom")
