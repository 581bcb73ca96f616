"""Email service for booking notifications.

Uses aiosmtplib for async email sending to avoid blocking the event loop.
"""
import asyncio
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
from pybreaker import CircuitBreakerError

from appointment_bot.config.constants import EmailConfig
from appointment_bot.config.settings import Settings, get_settings
from appointment_bot.core.models import NotificationResult
from appointment_bot.utils.circuit_breaker import smtp_breaker, with_circuit_breaker
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import track_email
from appointment_bot.utils.pii_redactor import get_pii_redactor

logger = get_logger(__name__)


class EmailService:
    """Sends the patient confirmation and the doctor notification for a booking."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_email = settings.smtp_email
        self.smtp_password = settings.get_smtp_password()

    async def send_booking_confirmation(
        self,
        patient_email: str,
        doctor_email: str,
        doctor_name: str,
        time_slot: str
    ) -> NotificationResult:
        """Send both messages concurrently. Each outcome is reported separately."""
        patient_sent, doctor_sent = await asyncio.gather(
            self.send_patient_confirmation(patient_email, doctor_name, time_slot),
            self.send_doctor_notification(doctor_email, patient_email, time_slot),
        )
        return NotificationResult(patient_sent=patient_sent, doctor_sent=doctor_sent)

    async def send_patient_confirmation(self, patient_email: str, doctor_name: str, time_slot: str) -> bool:
        body = f"Your appointment with {doctor_name} at {time_slot} has been confirmed."
        return await self._send_email(patient_email, EmailConfig.PATIENT_SUBJECT, body, recipient="patient")

    async def send_doctor_notification(self, doctor_email: str, patient_email: str, time_slot: str) -> bool:
        body = f"You have a new appointment at {time_slot} with patient {patient_email}."
        return await self._send_email(doctor_email, EmailConfig.DOCTOR_SUBJECT, body, recipient="doctor")

    def _build_message(self, to_email: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['From'] = self.smtp_email
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'plain'))
        return msg

    async def _send_email(self, to_email: str, subject: str, body: str, recipient: str) -> bool:
        """Send one plain-text email via async SMTP.

        Retries SMTP errors with linear backoff. Never raises; a failed or
        skipped send is reported as False.

        Args:
            to_email: Recipient email address
            subject: Email subject
            body: Email body content
            recipient: Metrics label, "patient" or "doctor"
        """
        redacted_to = get_pii_redactor().redact(to_email)

        if not self.smtp_email or not self.smtp_password:
            logger.warning(f"SMTP not configured, skipping email to {redacted_to}")
            track_email(recipient, 0.0, False)
            return False

        msg = self._build_message(to_email, subject, body)
        start = time.time()

        for attempt in range(EmailConfig.MAX_RETRY_ATTEMPTS):
            try:
                await with_circuit_breaker(
                    smtp_breaker,
                    aiosmtplib.send,
                    msg,
                    hostname=self.smtp_host,
                    port=self.smtp_port,
                    start_tls=True,
                    username=self.smtp_email,
                    password=self.smtp_password,
                    timeout=EmailConfig.SMTP_TIMEOUT_SEC
                )
                logger.info(f"Email sent successfully to {redacted_to}")
                track_email(recipient, time.time() - start, True)
                return True

            except CircuitBreakerError:
                logger.warning(f"SMTP circuit breaker open, not sending to {redacted_to}")
                break

            except (aiosmtplib.SMTPException, OSError) as smtp_error:
                if attempt < EmailConfig.MAX_RETRY_ATTEMPTS - 1:
                    delay = EmailConfig.RETRY_BASE_DELAY_SEC * (attempt + 1)
                    logger.warning(
                        f"SMTP error (attempt {attempt + 1}), retrying in {delay}s: {smtp_error}"
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Failed to send email to {redacted_to}: {smtp_error}", exc_info=True)

        track_email(recipient, time.time() - start, False)
        return False
