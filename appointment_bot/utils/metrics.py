"""Prometheus metrics for the appointment assistant.

Metrics Categories:
- Chat Metrics: Track conversation turns and stage transitions
- State Management: Track session store operations
- External Services: Track medical Q&A and SMTP latencies and errors
- Business Metrics: Track bookings
"""

from prometheus_client import Counter, Histogram, Gauge, Info
from appointment_bot.config.constants import MetricsConfig

# =============================================================================
# Application Info
# =============================================================================

app_info = Info('appointmentbot_app', 'Appointment assistant application information')
app_info.info({
    'version': '1.0.0',
    'description': 'Appointment booking chat assistant'
})

# =============================================================================
# Chat Metrics
# =============================================================================

chat_turns = Counter(
    'appointmentbot_chat_turns_total',
    'Total chat messages processed',
    ['stage']  # stage the message arrived in
)

stage_transitions = Counter(
    'appointmentbot_stage_transitions_total',
    'Stage transitions performed by the conversation state machine',
    ['from_stage', 'to_stage']
)

intent_overrides = Counter(
    'appointmentbot_intent_overrides_total',
    'Cross-cutting intents that pre-empted stage logic',
    ['intent']  # greeting, appointment
)

chat_errors = Counter(
    'appointmentbot_chat_errors_total',
    'Unexpected faults converted into a recovery reply',
    ['error_type']
)

# =============================================================================
# State Management Metrics
# =============================================================================

active_sessions = Gauge(
    'appointmentbot_active_sessions',
    'Number of live chat sessions in the in-memory store'
)

state_operations = Counter(
    'appointmentbot_state_operations_total',
    'Total number of session store operations',
    ['operation', 'backend']  # operation: create, get, save, cleanup; backend: redis, memory
)

state_operation_duration = Histogram(
    'appointmentbot_state_operation_duration_seconds',
    'Duration of session store operations',
    ['operation', 'backend'],
    buckets=MetricsConfig.LATENCY_BUCKETS
)

redis_connected = Gauge(
    'appointmentbot_redis_connected',
    'Redis connection status (1=connected, 0=disconnected)'
)

# =============================================================================
# External Service Metrics
# =============================================================================

medical_qa_requests = Counter(
    'appointmentbot_medical_qa_requests_total',
    'Total medical Q&A provider requests',
    ['status']  # success, error, timeout, circuit_open
)

medical_qa_latency = Histogram(
    'appointmentbot_medical_qa_latency_seconds',
    'Medical Q&A provider latency',
    buckets=MetricsConfig.LATENCY_BUCKETS
)

email_sent = Counter(
    'appointmentbot_emails_sent_total',
    'Total emails sent',
    ['recipient', 'status']  # recipient: patient, doctor; status: success, error
)

email_latency = Histogram(
    'appointmentbot_email_send_latency_seconds',
    'Email sending latency',
    buckets=MetricsConfig.LATENCY_BUCKETS
)

circuit_breaker_state = Gauge(
    'appointmentbot_circuit_breaker_open',
    'Circuit breaker state (1=open, 0=closed/half-open)',
    ['service']
)

circuit_breaker_trips = Counter(
    'appointmentbot_circuit_breaker_trips_total',
    'Number of times a circuit breaker opened',
    ['service']
)

# =============================================================================
# Business Logic Metrics
# =============================================================================

bookings = Counter(
    'appointmentbot_bookings_total',
    'Booking commit outcomes',
    ['status']  # success, failed, duplicate
)

# =============================================================================
# Helper Functions
# =============================================================================

def track_chat_turn(from_stage: int, to_stage: int) -> None:
    """Count a processed chat turn and the transition it caused."""
    chat_turns.labels(stage=str(from_stage)).inc()
    if from_stage != to_stage:
        stage_transitions.labels(from_stage=str(from_stage), to_stage=str(to_stage)).inc()


def track_intent_override(intent: str) -> None:
    """Count a greeting or appointment intent that bypassed stage logic."""
    intent_overrides.labels(intent=intent).inc()


def track_medical_qa(duration: float, status: str) -> None:
    """Track a medical Q&A request.

    Args:
        duration: Request duration in seconds
        status: success, error, timeout or circuit_open
    """
    medical_qa_requests.labels(status=status).inc()
    medical_qa_latency.observe(duration)


def track_email(recipient: str, duration: float, success: bool) -> None:
    """Track a single notification email send."""
    email_sent.labels(recipient=recipient, status='success' if success else 'error').inc()
    email_latency.observe(duration)


def track_state_operation(operation: str, backend: str, duration: float) -> None:
    """Track session store operation metrics.

    Args:
        operation: Type of operation (create, get, save, cleanup)
        backend: State backend (redis, memory)
        duration: Operation duration in seconds
    """
    state_operations.labels(operation=operation, backend=backend).inc()
    state_operation_duration.labels(operation=operation, backend=backend).observe(duration)
