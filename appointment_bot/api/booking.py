"""Booking commit endpoint."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from appointment_bot.api.dependencies import BadRequest, get_booking_service, limiter, read_json_object
from appointment_bot.config.constants import RateLimitConfig
from appointment_bot.config.prompts import ERROR_PROMPTS
from appointment_bot.core.models import BookingRequest
from appointment_bot.services.booking_service import BookingService
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.structured_logging import log_error

logger = get_logger(__name__)

router = APIRouter()


@router.post("/book-appointment")
@limiter.limit(f"{RateLimitConfig.BOOKING_PER_MINUTE}/minute")
async def book_appointment(
    request: Request,
    booking_service: BookingService = Depends(get_booking_service),
):
    """Send the confirmation emails for a booking the chat flow proposed.

    Retrying with the same ``bookingReference`` only re-sends what failed.
    """
    try:
        booking = BookingRequest.model_validate(await read_json_object(request))
    except BadRequest as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {e.error_count()} field error(s)"})

    missing = booking.missing_fields()
    if missing:
        return JSONResponse(
            status_code=400,
            content={"error": ERROR_PROMPTS["missing_booking_fields"], "missing": missing},
        )

    try:
        result = await booking_service.commit_booking(booking)
    except Exception as e:
        log_error(logger, e, "Booking commit failed", booking_reference=booking.booking_reference)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": ERROR_PROMPTS["booking_failed"],
                "patientNotified": False,
                "doctorNotified": False,
            },
        )

    if not result.success:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": ERROR_PROMPTS["booking_failed"],
                "bookingReference": result.booking_reference,
                "patientNotified": result.patient_notified,
                "doctorNotified": result.doctor_notified,
            },
        )

    return {
        "success": True,
        "message": "Appointment booked successfully",
        "bookingReference": result.booking_reference,
        "alreadyCommitted": result.already_committed,
    }
