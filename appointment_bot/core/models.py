"""Data models for the appointment assistant."""
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Stage(IntEnum):
    """Positions in the linear conversation protocol."""
    ENTRY = 0
    WARM_UP = 1
    COLLECTING_NAME = 2
    COLLECTING_EMAIL = 3
    MAIN_MENU = 4
    SPECIALTY_SELECTION = 5
    DOCTOR_SELECTION = 6
    TIME_SLOT_SELECTION = 7
    CONFIRMATION = 8
    MEDICAL_INQUIRY = 9


class ApiModel(BaseModel):
    """Base for models exchanged with the browser client (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Doctor(BaseModel):
    """A doctor listed under a specialty."""
    model_config = ConfigDict(frozen=True)

    name: str
    email: str


class ActionType(str, Enum):
    """Semantic identifiers for suggested actions."""
    REPLY = "reply"
    MEDICAL_INQUIRY = "medical_inquiry"
    SELECT_SPECIALTY = "select_specialty"
    SELECT_DOCTOR = "select_doctor"
    SELECT_TIMESLOT = "select_timeslot"
    CONFIRM_APPOINTMENT = "confirm_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    RETURN_BACK = "return_back"


class BookingProposal(ApiModel):
    """A complete, not yet committed, booking selection."""
    booking_reference: str
    patient_email: str
    doctor_email: str
    doctor_name: str
    specialty: str
    time_slot: str


class SuggestedAction(ApiModel):
    """A client-facing button."""
    label: str
    action: ActionType
    specialty: Optional[str] = None
    doctor: Optional[str] = None
    time_slot: Optional[str] = None
    text: Optional[str] = None
    booking: Optional[BookingProposal] = None

    @computed_field
    @property
    def message(self) -> str:
        """Literal message a legacy client sends when the button is chosen."""
        if self.action == ActionType.REPLY:
            return self.text or self.label
        if self.action == ActionType.SELECT_SPECIALTY:
            return f"select_specialty:{self.specialty}"
        if self.action == ActionType.SELECT_DOCTOR:
            return f"select_doctor:{self.doctor}:{self.specialty}"
        if self.action == ActionType.SELECT_TIMESLOT:
            return f"select_timeslot:{self.time_slot}:{self.doctor}:{self.specialty}"
        return self.action.value


class ReplyEnvelope(ApiModel):
    """Structured response returned for every chat turn."""
    reply: str = ""
    actions: List[SuggestedAction] = Field(default_factory=list)
    disable_input: bool = False
    hide_input: bool = False
    is_medical_inquiry: bool = False
    silent: bool = False
    stage: int = Stage.ENTRY
    booking: Optional[BookingProposal] = None

    @computed_field
    @property
    def buttons(self) -> List[Dict[str, str]]:
        """Actions in the legacy ``{text, action}`` shape, ``action`` being the literal message."""
        return [{"text": action.label, "action": action.message} for action in self.actions]


class ConversationState(BaseModel):
    """State of one chat session."""
    session_id: str
    stage: int = Stage.ENTRY
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    selected_specialty: Optional[str] = None
    selected_doctor: Optional[Doctor] = None
    selected_time_slot: Optional[str] = None
    booking_reference: Optional[str] = None
    is_medical_inquiry: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def reset(self) -> None:
        """Return every conversation field to its initial value, keeping the session id."""
        self.stage = Stage.ENTRY
        self.user_name = None
        self.user_email = None
        self.selected_specialty = None
        self.selected_doctor = None
        self.selected_time_slot = None
        self.booking_reference = None
        self.is_medical_inquiry = False

    def touch(self) -> None:
        self.updated_at = _utcnow()


# =============================================================================
# HTTP request/response bodies
# =============================================================================

class ActionPayload(ApiModel):
    """Structured form of a chosen suggested action."""
    type: ActionType
    specialty: Optional[str] = None
    doctor: Optional[str] = None
    time_slot: Optional[str] = None
    text: Optional[str] = None


class ChatRequest(ApiModel):
    """Body of ``POST /chat``."""
    message: Optional[str] = None
    action: Optional[ActionPayload] = None


class BookingRequest(ApiModel):
    """Body of ``POST /book-appointment``. Required fields are checked by the endpoint."""
    patient_email: Optional[str] = None
    doctor_email: Optional[str] = None
    doctor_name: Optional[str] = None
    time_slot: Optional[str] = None
    booking_reference: Optional[str] = None

    def missing_fields(self) -> List[str]:
        required = {
            "patientEmail": self.patient_email,
            "doctorEmail": self.doctor_email,
            "doctorName": self.doctor_name,
            "timeSlot": self.time_slot,
        }
        return [name for name, value in required.items() if not value]


class NotificationResult(BaseModel):
    """Outcome of the two confirmation sends."""
    patient_sent: bool
    doctor_sent: bool

    @property
    def success(self) -> bool:
        return self.patient_sent and self.doctor_sent


class BookingResult(ApiModel):
    """Outcome of a booking commit."""
    success: bool
    booking_reference: str
    patient_notified: bool
    doctor_notified: bool
    already_committed: bool = False
