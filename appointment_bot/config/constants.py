"""Configuration constants for the appointment assistant.

This module centralizes all magic numbers and configuration values
used throughout the application for better maintainability.
"""

# ============================================================================
# CONVERSATION CONFIGURATION
# ============================================================================

class ConversationConfig:
    """Conversation flow and input validation settings."""

    MIN_NAME_LENGTH = 2
    """Shortest accepted patient name"""

    CONTROL_START = "start"
    """Control message that resets the session and shows the entry reply"""

    CONTROL_END = "end"
    """Control message that resets the session silently"""

    CONTROL_RETURN_BACK = "return_back"
    """Control message that returns to the previous menu"""


# ============================================================================
# SESSION CONFIGURATION
# ============================================================================

class SessionConfig:
    """Session store settings."""

    REDIS_KEY_PREFIX = "appointmentbot:session"
    """Prefix for Redis session keys"""

    SESSION_HEADER = "X-Session-Id"
    """Header carrying the session id for clients without cookies"""

    PURGE_INTERVAL_SEC = 60
    """Minimum interval between in-memory expiry sweeps"""


# ============================================================================
# BOOKING CONFIGURATION
# ============================================================================

class BookingConfig:
    """Booking commit ledger settings."""

    LEDGER_TTL_SEC = 24 * 60 * 60
    """How long a booking reference is remembered for retries"""

    PURGE_INTERVAL_SEC = 60
    """Minimum interval between ledger expiry sweeps"""


# ============================================================================
# EMAIL CONFIGURATION
# ============================================================================

class EmailConfig:
    """Email service configuration."""

    # Retry Settings
    MAX_RETRY_ATTEMPTS = 3
    """Maximum email send retry attempts"""

    RETRY_BASE_DELAY_SEC = 2
    """Base delay for linear backoff (seconds)"""

    # SMTP Settings
    SMTP_TIMEOUT_SEC = 30
    """SMTP connection timeout"""

    PATIENT_SUBJECT = "Appointment Confirmation"
    DOCTOR_SUBJECT = "New Appointment Booking"


# ============================================================================
# LLM CONFIGURATION
# ============================================================================

class LLMConfig:
    """Medical Q&A provider configuration."""

    TEMPERATURE = 0.3
    """Low temperature keeps general answers consistent"""

    MAX_ANSWER_LINES = 10
    """Approximate answer length requested from the provider"""


# ============================================================================
# API TIMEOUTS
# ============================================================================

class APITimeouts:
    """Timeout configuration for external API calls."""

    HTTP_TOTAL_TIMEOUT_SEC = 30
    """Total timeout for HTTP requests"""

    DEFAULT_TIMEOUT_SEC = 10
    """Timeout for standalone HTTP sessions"""


# ============================================================================
# CIRCUIT BREAKER CONFIGURATION
# ============================================================================

class CircuitBreakerConfig:
    """Circuit breaker settings for external services."""

    FAIL_MAX = 5
    """Consecutive failures before the circuit opens"""

    RESET_TIMEOUT_SEC = 60
    """Seconds before an open circuit allows a trial call"""


# ============================================================================
# HEALTH CHECK CONFIGURATION
# ============================================================================

class HealthCheckConfig:
    """Health check settings."""

    DEPENDENCY_CHECK_TIMEOUT_SEC = 5
    """Timeout for individual dependency health checks"""


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

class LoggingConfig:
    """Logging configuration."""

    MAX_LOG_TEXT_LENGTH = 100
    """Maximum message length for log previews"""


# ============================================================================
# RATE LIMITING CONFIGURATION
# ============================================================================

class RateLimitConfig:
    """Rate limiting settings."""

    CHAT_PER_MINUTE = 60
    """Maximum chat turns per minute per IP"""

    BOOKING_PER_MINUTE = 10
    """Maximum booking commits per minute per IP"""


# ============================================================================
# METRICS CONFIGURATION
# ============================================================================

class MetricsConfig:
    """Metrics and monitoring configuration."""

    LATENCY_BUCKETS = [0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
    """Histogram buckets for latency metrics (seconds)"""
