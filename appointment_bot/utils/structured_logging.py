"""Structured logging utilities for the appointment assistant.

All helpers that log chat text run it through the PII redactor first.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from appointment_bot.config.constants import LoggingConfig
from appointment_bot.utils.pii_redactor import get_pii_redactor


def log_chat_turn(
    logger: logging.Logger,
    session_id: str,
    message: str,
    from_stage: int,
    to_stage: int,
    known_names: Iterable[str] = (),
    **extra_fields: Any
) -> None:
    """Log one processed chat turn with the inbound text redacted."""
    text = get_pii_redactor().redact(message, known_names=known_names) or ""
    logger.info(
        f"chat_turn stage {from_stage} -> {to_stage}",
        extra={
            "event": "chat_turn",
            "session_id": session_id,
            "text": text[:LoggingConfig.MAX_LOG_TEXT_LENGTH],
            "from_stage": from_stage,
            "to_stage": to_stage,
            **extra_fields
        }
    )


def log_error(
    logger: logging.Logger,
    error: Exception,
    context: str,
    session_id: Optional[str] = None,
    **extra_fields: Any
) -> None:
    """Log an error with context.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Description of what was happening when the error occurred
        session_id: Optional session id
        **extra_fields: Additional fields
    """
    extra: Dict[str, Any] = {
        "event": "error",
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context,
        **extra_fields
    }

    if session_id:
        extra["session_id"] = session_id

    logger.error(
        f"{context}: {error}",
        extra=extra,
        exc_info=True
    )
