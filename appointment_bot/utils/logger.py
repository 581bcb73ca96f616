"""Logging configuration for the application.

Handlers live on the ``appointment_bot`` package logger; module loggers
propagate to it. Every handler masks email addresses before a record is
written, so addresses never reach stdout or the log file even when a call
site forgets to redact.
"""
import logging
import sys
from pathlib import Path

from appointment_bot.config.settings import get_settings
from appointment_bot.utils.pii_redactor import get_pii_redactor

PACKAGE_LOGGER = "appointment_bot"

log_dir = Path("logs")

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class RedactingFilter(logging.Filter):
    """Masks email addresses in the rendered log message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = get_pii_redactor().redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def _configure_package_logger() -> logging.Logger:
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers:
        return package_logger

    settings = get_settings()
    package_logger.setLevel(getattr(logging, settings.log_level))

    formatter = logging.Formatter(_FORMAT)
    redacting = RedactingFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    handlers = [console_handler]

    # File handler only in development
    if settings.app_env == "development":
        log_dir.mkdir(exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "appointment_bot.log")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redacting)
        package_logger.addHandler(handler)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the configured ``appointment_bot`` hierarchy."""
    _configure_package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
