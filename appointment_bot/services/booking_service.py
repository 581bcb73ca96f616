"""Booking commit: sends the two notifications for a confirmed booking.

A booking reference identifies one commit. The service remembers, per
reference, which recipients were already notified, so a client retrying after
a partial failure only triggers the send that is still missing, and retrying
a completed booking sends nothing. Entries expire after
``BookingConfig.LEDGER_TTL_SEC``. Commits without a client-supplied reference
cannot be retried and are not remembered.
"""
import asyncio
import time
import uuid
import weakref
from typing import Callable, Dict

from appointment_bot.config.constants import BookingConfig
from appointment_bot.core.models import BookingRequest, BookingResult
from appointment_bot.services.email_service import EmailService
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import bookings

logger = get_logger(__name__)


def _unsent() -> Dict[str, bool]:
    return {"patient": False, "doctor": False}


class BookingService:
    """Idempotent booking commits over the email notification gateway."""

    def __init__(
        self,
        email_service: EmailService,
        ttl_seconds: int = BookingConfig.LEDGER_TTL_SEC,
        clock: Callable[[], float] = time.monotonic
    ):
        self.email_service = email_service
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._ledger: Dict[str, Dict[str, bool]] = {}
        self._expires_at: Dict[str, float] = {}
        self._last_purge = clock()
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, reference: str) -> asyncio.Lock:
        lock = self._locks.get(reference)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[reference] = lock
        return lock

    def _is_expired(self, reference: str, now: float) -> bool:
        return self._expires_at.get(reference, 0.0) <= now

    def _purge_expired(self, now: float) -> None:
        if now - self._last_purge < BookingConfig.PURGE_INTERVAL_SEC:
            return
        expired = [ref for ref in self._ledger if self._is_expired(ref, now)]
        for reference in expired:
            self._ledger.pop(reference, None)
            self._expires_at.pop(reference, None)
        self._last_purge = now
        if expired:
            logger.info(f"Purged {len(expired)} expired booking references")

    def _live_entry(self, reference: str) -> Dict[str, bool]:
        if reference in self._ledger and not self._is_expired(reference, self._clock()):
            return dict(self._ledger[reference])
        return _unsent()

    def notified(self, reference: str) -> Dict[str, bool]:
        """Recipients already notified for ``reference``."""
        return self._live_entry(reference)

    async def _send_outstanding(self, request: BookingRequest, entry: Dict[str, bool]) -> Dict[str, bool]:
        if not entry["patient"] and not entry["doctor"]:
            result = await self.email_service.send_booking_confirmation(
                request.patient_email, request.doctor_email, request.doctor_name, request.time_slot
            )
            return {"patient": result.patient_sent, "doctor": result.doctor_sent}

        # Retry after a partial failure: only the missing recipient
        if not entry["patient"]:
            sent = await self.email_service.send_patient_confirmation(
                request.patient_email, request.doctor_name, request.time_slot
            )
            return {"patient": sent, "doctor": True}
        sent = await self.email_service.send_doctor_notification(
            request.doctor_email, request.patient_email, request.time_slot
        )
        return {"patient": True, "doctor": sent}

    async def commit_booking(self, request: BookingRequest) -> BookingResult:
        """Send whatever notifications are still outstanding for the booking.

        Raises:
            ValueError: If a required booking field is missing
        """
        missing = request.missing_fields()
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        if not request.booking_reference:
            reference = uuid.uuid4().hex
            entry = await self._send_outstanding(request, _unsent())
            return self._result(reference, entry)

        reference = request.booking_reference
        async with self._lock_for(reference):
            self._purge_expired(self._clock())
            entry = self._live_entry(reference)

            if entry["patient"] and entry["doctor"]:
                logger.info(f"Booking {reference} already committed, not resending")
                bookings.labels(status="duplicate").inc()
                return BookingResult(
                    success=True,
                    booking_reference=reference,
                    patient_notified=True,
                    doctor_notified=True,
                    already_committed=True,
                )

            entry = await self._send_outstanding(request, entry)
            self._ledger[reference] = entry
            self._expires_at[reference] = self._clock() + self.ttl_seconds

        return self._result(reference, entry)

    def _result(self, reference: str, entry: Dict[str, bool]) -> BookingResult:
        success = entry["patient"] and entry["doctor"]
        bookings.labels(status="success" if success else "failed").inc()
        if success:
            logger.info(f"Booking {reference} committed")
        else:
            logger.warning(
                f"Booking {reference} incomplete: patient={entry['patient']} doctor={entry['doctor']}"
            )

        return BookingResult(
            success=success,
            booking_reference=reference,
            patient_notified=entry["patient"],
            doctor_notified=entry["doctor"],
        )
