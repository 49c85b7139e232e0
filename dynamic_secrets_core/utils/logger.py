"""
Logging for the dynamic secret framework.

ContextAwareLogger renders `extra` attributes into the message as pipe-delimited
key=value pairs so they survive host formatters that ignore custom record fields.
"""

import logging
import sys
from typing import Optional, Union

from ..config import get_config
from ..exceptions import get_correlation_id

LOGGER_NAME = "dynamic_secrets"

_configured_logger: Optional["ContextAwareLogger"] = None


class ContextAwareLogger:
    """
    Logger wrapper that formats extra attributes in message while preserving them.
    """

    def __init__(self, logger: logging.Logger):
        """Initialize with an existing logger."""
        self.logger = logger

    def _log_with_formatted_extra(self, level: str, msg: str, **kwargs) -> None:
        extra = kwargs.pop("extra", {}) or {}

        if extra:
            extra_str = " | ".join(f"{k}={v}" for k, v in extra.items())
            full_msg = f"{msg} | {extra_str}"
        else:
            full_msg = msg

        # LogRecord reserves some attribute names; keep them out of the record
        safe_extra = {k: v for k, v in extra.items() if k not in _RESERVED_ATTRS}
        log_method = getattr(self.logger, level)
        log_method(full_msg, extra=safe_extra, **kwargs)

    def set_level(self, level: Union[int, str]) -> None:
        """Set the logging level of the underlying logger."""
        self.logger.setLevel(level)

    def info(self, msg: str, **kwargs) -> None:
        self._log_with_formatted_extra("info", msg, **kwargs)

    def error(self, msg: str, **kwargs) -> None:
        self._log_with_formatted_extra("error", msg, **kwargs)

    def warning(self, msg: str, **kwargs) -> None:
        self._log_with_formatted_extra("warning", msg, **kwargs)

    def debug(self, msg: str, **kwargs) -> None:
        self._log_with_formatted_extra("debug", msg, **kwargs)

    def exception(self, msg: str, **kwargs) -> None:
        self._log_with_formatted_extra("exception", msg, **kwargs)


_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys() | {"message", "asctime"}
)


class CorrelationIdFilter(logging.Filter):
    """Adds the current correlation id to every record that passes through."""

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = get_correlation_id()
        if correlation_id and not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id
        return True


def configure_logging(
    log_level: Optional[Union[int, str]] = None,
    log_format: Optional[str] = None,
) -> ContextAwareLogger:
    """
    Configure the package logger with a console handler.

    Args:
        log_level: Logging level (default: from config)
        log_format: Formatter string (default: from config)

    Returns:
        The configured logger wrapped with ContextAwareLogger
    """
    global _configured_logger

    app_config = get_config()
    if log_level is None:
        log_level = app_config.logging.level
    if log_format is None:
        log_format = app_config.logging.format

    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(log_format))
    console_handler.addFilter(CorrelationIdFilter())
    logger.addHandler(console_handler)

    _configured_logger = ContextAwareLogger(logger)
    _configured_logger.debug("Logger configured", extra={"level": logging.getLevelName(log_level)})
    return _configured_logger


def get_logger() -> ContextAwareLogger:
    """
    Get the package logger.

    Returns the logger installed by configure_logging, or a wrapper around the
    package logger that propagates to whatever handlers the host application set up.
    """
    if _configured_logger is not None:
        return _configured_logger
    return ContextAwareLogger(logging.getLogger(LOGGER_NAME))


def reset_logging() -> None:
    """Forget the configured logger. Used by tests."""
    global _configured_logger
    _configured_logger = None
