"""Shared FastAPI dependencies: rate limiter, services and request helpers."""
import json
import re
import uuid
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from appointment_bot.config.constants import SessionConfig
from appointment_bot.core.state_machine import ConversationEngine
from appointment_bot.services.booking_service import BookingService
from appointment_bot.services.email_service import EmailService
from appointment_bot.services.medical_qa_service import MedicalQAService

# Rate limiter - uses remote IP address as key
limiter = Limiter(key_func=get_remote_address)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{8,128}$")


class BadRequest(Exception):
    """Raised for request bodies that cannot be processed (HTTP 400)."""


@lru_cache()
def get_medical_qa_service() -> MedicalQAService:
    return MedicalQAService()


@lru_cache()
def get_conversation_engine() -> ConversationEngine:
    return ConversationEngine(get_medical_qa_service())


@lru_cache()
def get_email_service() -> EmailService:
    return EmailService()


@lru_cache()
def get_booking_service() -> BookingService:
    """Process-wide booking service; its ledger must outlive single requests."""
    return BookingService(get_email_service())


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Parse the request body, insisting on a JSON object."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def resolve_session_id(request: Request, cookie_name: str) -> str:
    """Session id from the cookie, else the header, else a new one.

    Ids that are not plain tokens are ignored and replaced.
    """
    candidate: Optional[str] = (
        request.cookies.get(cookie_name) or request.headers.get(SessionConfig.SESSION_HEADER)
    )
    if candidate and _SESSION_ID_PATTERN.match(candidate):
        return candidate
    return uuid.uuid4().hex
