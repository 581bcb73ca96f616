"""Prometheus metrics endpoint.

Exposes application metrics in Prometheus format for scraping.
"""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Metrics exposed include:
        - appointmentbot_chat_turns_total: Chat messages processed, by stage
        - appointmentbot_stage_transitions_total: Stage changes
        - appointmentbot_intent_overrides_total: Greeting / appointment overrides
        - appointmentbot_medical_qa_latency_seconds: Q&A provider latency
        - appointmentbot_emails_sent_total: Notification sends
        - appointmentbot_bookings_total: Booking commit outcomes
        - appointmentbot_circuit_breaker_open: Breaker state per service
        - ... see appointment_bot/utils/metrics.py
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
