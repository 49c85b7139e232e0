"""
Unit tests for logger utilities.
"""

import logging
from unittest.mock import Mock

from dynamic_secrets_core.exceptions import set_correlation_id
from dynamic_secrets_core.utils.logger import (
    LOGGER_NAME,
    ContextAwareLogger,
    CorrelationIdFilter,
    configure_logging,
    get_logger,
)


class TestContextAwareLogger:
    """Test ContextAwareLogger functionality."""

    def setup_method(self):
        self.mock_logger = Mock(spec=logging.Logger)
        self.context_logger = ContextAwareLogger(self.mock_logger)

    def test_set_level(self):
        self.context_logger.set_level(logging.DEBUG)
        self.mock_logger.setLevel.assert_called_once_with(logging.DEBUG)

    def test_no_extras(self):
        self.context_logger.info("Lease created")

        self.mock_logger.info.assert_called_once_with("Lease created", extra={})

    def test_extras_are_rendered_into_message(self):
        extra = {"entity_id": "user1", "provider_type": "redis"}

        self.context_logger.error("Revoke failed", extra=extra)

        self.mock_logger.error.assert_called_once_with(
            "Revoke failed | entity_id=user1 | provider_type=redis", extra=extra
        )

    def test_reserved_record_attributes_are_dropped(self):
        self.context_logger.warning("Odd", extra={"message": "clash", "status": "error"})

        args, kwargs = self.mock_logger.warning.call_args
        assert args[0] == "Odd | message=clash | status=error"
        assert kwargs["extra"] == {"status": "error"}

    def test_exception_passes_kwargs(self):
        self.context_logger.exception("Boom", extra={"entity_id": "u"}, stack_info=True)

        self.mock_logger.exception.assert_called_once_with(
            "Boom | entity_id=u", extra={"entity_id": "u"}, stack_info=True
        )


class TestCorrelationIdFilter:
    def test_adds_current_correlation_id(self):
        set_correlation_id("request-7")
        record = logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, "msg", (), None)

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "request-7"

    def test_leaves_records_alone_without_correlation_id(self):
        record = logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, "msg", (), None)

        CorrelationIdFilter().filter(record)

        assert not hasattr(record, "correlation_id")


class TestConfigureLogging:
    def teardown_method(self):
        logger = logging.getLogger(LOGGER_NAME)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    def test_configure_installs_single_handler(self):
        configure_logging("DEBUG")
        logger = configure_logging("WARNING")

        assert logger.logger.name == LOGGER_NAME
        assert logger.logger.level == logging.WARNING
        assert len(logger.logger.handlers) == 1
        assert get_logger() is logger

    def test_get_logger_without_configuration(self):
        logger = get_logger()

        assert isinstance(logger, ContextAwareLogger)
        assert logger.logger.name == LOGGER_NAME
