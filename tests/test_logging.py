"""Tests for Courier structured logging."""

from unittest.mock import patch

from courier.config import Settings
from courier.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_with_defaults(self):
        """Should configure with INFO level and JSON format by default."""
        configure_logging()
        logger = get_logger("test")
        # Should not raise
        logger.info("test message")

    def test_configure_with_text_format(self):
        """Should accept text format for development."""
        configure_logging(level="INFO", format="text")
        logger = get_logger("test")
        logger.info("text format message")

    def test_configure_with_unknown_level(self):
        """Unknown levels should fall back to INFO."""
        configure_logging(level="LOUD")
        logger = get_logger("test")
        logger.info("fallback level message")

    def test_configure_multiple_times(self):
        """Should handle multiple configuration calls."""
        configure_logging(level="INFO")
        configure_logging(level="DEBUG")
        logger = get_logger("test")
        logger.info("after reconfigure")

    def test_reconfigure_applies_level(self):
        """A later call should change the root level."""
        import logging

        configure_logging(level="INFO")
        configure_logging(level="WARNING")
        assert logging.getLogger().level == logging.WARNING
        configure_logging(level="INFO")


class TestGetLogger:
    """Tests for logger creation."""

    def test_first_use_configures_from_settings(self):
        """Unconfigured logging should pick up level and format from settings."""
        settings = Settings(log_level="WARNING", log_format="text", _env_file=None)

        with (
            patch("courier.logging._configured", False),
            patch("courier.config.settings", settings),
            patch("courier.logging.configure_logging") as configure,
        ):
            get_logger("test")

        configure.assert_called_once_with(level="WARNING", format="text")

    def test_get_logger_with_name(self):
        logger = get_logger("courier.dispatcher")
        assert logger is not None

    def test_loggers_are_callable(self):
        """Should return callable logger instances."""
        logger = get_logger("test")
        assert callable(getattr(logger, "info", None))
        assert callable(getattr(logger, "warning", None))


class TestContextBinding:
    """Tests for context variable binding."""

    def setup_method(self):
        """Clear context before each test."""
        clear_context()

    def teardown_method(self):
        """Clear context after each test."""
        clear_context()

    def test_bind_context(self):
        """Should bind delivery context variables."""
        import structlog

        bind_context(target_id="whk_1", event="order.created")
        assert structlog.contextvars.get_contextvars() == {
            "target_id": "whk_1",
            "event": "order.created",
        }

    def test_unbind_specific_context(self):
        """Should unbind specific context keys."""
        import structlog

        bind_context(target_id="whk_1", attempt=2)
        unbind_context("attempt")
        assert structlog.contextvars.get_contextvars() == {"target_id": "whk_1"}

    def test_clear_context(self):
        import structlog

        bind_context(target_id="whk_1")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}


class TestLoggerUsage:
    """Tests for logger usage patterns."""

    def test_log_with_kwargs(self):
        """Should accept keyword arguments for structured data."""
        configure_logging()
        logger = get_logger("test")
        logger.info(
            "delivery_succeeded",
            target_id="whk_1",
            duration_ms=150.0,
            status_code=200,
        )

    def test_log_with_exception(self):
        """Should handle exception logging."""
        configure_logging()
        logger = get_logger("test")

        try:
            raise ValueError("test error")
        except ValueError:
            logger.exception("delivery_error")
