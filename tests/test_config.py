"""Unit tests for Courier configuration."""

import os
import warnings
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from courier.config import Settings


class TestSettings:
    """Tests for Settings model."""

    def test_default_settings(self):
        """Default settings should be reasonable."""
        # Use _env_file=None to prevent reading from .env file
        settings = Settings(_env_file=None)
        assert settings.request_timeout_seconds == 30.0
        assert settings.probe_timeout_seconds == 5.0
        assert settings.max_concurrent_deliveries == 10
        assert settings.user_agent == "Courier-Webhook/1.0"
        assert settings.default_signature_version == "v1"
        assert settings.default_retry_delay_ms == 60_000
        assert settings.default_rate_limit_window_ms == 60_000
        assert settings.response_body_limit == 1000

    def test_log_formats(self):
        """Only valid log formats should be accepted."""
        settings = Settings(log_format="json")
        assert settings.log_format == "json"

        settings = Settings(log_format="text")
        assert settings.log_format == "text"

        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_timeout_bounds(self):
        """Timeouts must be positive and bounded."""
        with pytest.raises(ValidationError):
            Settings(request_timeout_seconds=0)
        with pytest.raises(ValidationError):
            Settings(request_timeout_seconds=301)
        with pytest.raises(ValidationError):
            Settings(probe_timeout_seconds=-1)

    def test_concurrency_bounds(self):
        """At least one concurrent delivery is required."""
        with pytest.raises(ValidationError):
            Settings(max_concurrent_deliveries=0)

    def test_empty_signature_version_rejected(self):
        with pytest.raises(ValidationError):
            Settings(default_signature_version="")

    def test_env_prefix(self):
        """Settings should use COURIER_ prefix for environment variables."""
        with patch.dict(os.environ, {"COURIER_LOG_LEVEL": "DEBUG"}):
            settings = Settings()
            assert settings.log_level == "DEBUG"

    def test_env_timeout(self):
        """COURIER_REQUEST_TIMEOUT_SECONDS should override default."""
        with patch.dict(os.environ, {"COURIER_REQUEST_TIMEOUT_SECONDS": "12.5"}):
            settings = Settings()
            assert settings.request_timeout_seconds == 12.5

    def test_probe_longer_than_request_warns(self):
        """A probe timeout above the request timeout should warn."""
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            Settings(request_timeout_seconds=2.0, probe_timeout_seconds=10.0, _env_file=None)
            assert len(w) == 1
            assert "probe_timeout_seconds" in str(w[0].message)

    def test_probe_within_request_does_not_warn(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            Settings(request_timeout_seconds=10.0, probe_timeout_seconds=2.0, _env_file=None)
            assert len(w) == 0
