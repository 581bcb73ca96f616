"""Pytest configuration and shared fixtures."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from appointment_bot.core.directory import find_doctor
from appointment_bot.core.memory_state_manager import InMemoryStateManager
from appointment_bot.core.models import ConversationState, Stage
from appointment_bot.core.state_machine import ConversationEngine


@pytest.fixture
def mock_settings():
    """Settings with SMTP and the Q&A provider configured."""
    from appointment_bot.config.settings import Settings

    return Settings(
        app_env="testing",
        smtp_email="clinic@example.com",
        smtp_password="test_password_123456",
        groq_api_key="gsk_" + "a" * 48,
        medical_qa_timeout_sec=1,
    )


@pytest.fixture
def test_session_id():
    return "session-1234567890abcdef"


@pytest.fixture
def conversation_state(test_session_id):
    """A fresh session at stage 0."""
    return ConversationState(session_id=test_session_id)


@pytest.fixture
def main_menu_state(test_session_id):
    """A session with name and email collected, sitting at the main menu."""
    return ConversationState(
        session_id=test_session_id,
        stage=Stage.MAIN_MENU,
        user_name="John",
        user_email="john@x.com",
    )


@pytest.fixture
def confirmation_state(test_session_id):
    """A session waiting for Confirm/Cancel on Dermatology / Dr. Riya Sen / 10:00 AM."""
    return ConversationState(
        session_id=test_session_id,
        stage=Stage.CONFIRMATION,
        user_name="John",
        user_email="john@x.com",
        selected_specialty="Dermatology",
        selected_doctor=find_doctor("Dermatology", "Dr. Riya Sen"),
        selected_time_slot="10:00 AM",
        booking_reference="ref-0001",
    )


@pytest.fixture
def mock_medical_qa():
    """Medical Q&A gateway returning a canned answer."""
    mock = MagicMock()
    mock.answer = AsyncMock(return_value="Leg pain is commonly caused by muscle strain.")
    return mock


@pytest.fixture
def engine(mock_medical_qa):
    return ConversationEngine(mock_medical_qa)


@pytest.fixture
def memory_state_manager():
    return InMemoryStateManager(ttl_seconds=1800)


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI-compatible client."""
    mock = AsyncMock()
    mock.chat.completions.create = AsyncMock(
        return_value=MagicMock(
            choices=[
                MagicMock(
                    message=MagicMock(content="Test response")
                )
            ]
        )
    )
    return mock


@pytest.fixture
def mock_email_service(mock_settings):
    """Email service whose individual sends are mocked and all succeed."""
    from appointment_bot.services.email_service import EmailService

    service = EmailService(mock_settings)
    service.send_patient_confirmation = AsyncMock(return_value=True)
    service.send_doctor_notification = AsyncMock(return_value=True)
    return service


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """Breakers are module-level; close them so failures do not leak between tests."""
    from appointment_bot.utils.circuit_breaker import groq_breaker, smtp_breaker

    groq_breaker.close()
    smtp_breaker.close()
    yield
    groq_breaker.close()
    smtp_breaker.close()
