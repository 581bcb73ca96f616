"""Decoding of inbound chat input into tagged commands.

Clients send either a raw ``message`` string (free text, a control token, or a
legacy colon-delimited action such as ``select_doctor:Dr. Riya Sen:Dermatology``)
or a structured ``action`` object. Both forms are decoded here, once, so the
state machine only ever sees a ``Command``.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from appointment_bot.config.constants import ConversationConfig
from appointment_bot.core.classifiers import normalize
from appointment_bot.core.directory import find_time_slot
from appointment_bot.core.models import ActionPayload, ActionType


class CommandKind(str, Enum):
    START = "start"
    END = "end"
    RETURN_BACK = "return_back"
    SELECT_SPECIALTY = "select_specialty"
    SELECT_DOCTOR = "select_doctor"
    SELECT_TIMESLOT = "select_timeslot"
    CONFIRM = "confirm_appointment"
    CANCEL = "cancel_appointment"
    MEDICAL_INQUIRY = "medical_inquiry"
    TEXT = "text"


class Command(BaseModel):
    """A decoded chat input."""
    kind: CommandKind
    text: str = ""
    specialty: Optional[str] = None
    doctor: Optional[str] = None
    time_slot: Optional[str] = None

    @property
    def is_free_text(self) -> bool:
        return self.kind == CommandKind.TEXT

    @property
    def is_control(self) -> bool:
        return self.kind in (CommandKind.START, CommandKind.END, CommandKind.RETURN_BACK)


_TOKEN_COMMANDS = {
    ConversationConfig.CONTROL_RETURN_BACK: CommandKind.RETURN_BACK,
    "confirm_appointment": CommandKind.CONFIRM,
    "cancel_appointment": CommandKind.CANCEL,
    "medical_inquiry": CommandKind.MEDICAL_INQUIRY,
}

_SPECIALTY_PREFIX = "select_specialty:"
_DOCTOR_PREFIX = "select_doctor:"
_TIMESLOT_PREFIX = "select_timeslot:"


def _split_timeslot(rest: str):
    """Split ``<slot>:<doctor>:<specialty>`` where the slot itself contains colons.

    Splits are tried from the right; the first one whose leading part is a
    known slot wins. Without a known slot the widest split is used so the
    caller can report the unknown slot.
    """
    parts = rest.rsplit(":", 2)
    if len(parts) == 3 and find_time_slot(parts[0]):
        return parts[0], parts[1], parts[2]
    parts = rest.rsplit(":", 1)
    if len(parts) == 2 and find_time_slot(parts[0]):
        return parts[0], parts[1], None
    if find_time_slot(rest):
        return rest, None, None
    parts = rest.rsplit(":", 2)
    if len(parts) == 3:
        return parts[0], parts[1], parts[2]
    return rest, None, None


def parse_message(message: str) -> Command:
    """Decode a raw message string."""
    stripped = message.strip()

    if stripped == ConversationConfig.CONTROL_START:
        return Command(kind=CommandKind.START, text=message)
    if stripped == ConversationConfig.CONTROL_END:
        return Command(kind=CommandKind.END, text=message)

    token_kind = _TOKEN_COMMANDS.get(normalize(message))
    if token_kind is not None:
        return Command(kind=token_kind, text=message)

    if stripped.startswith(_SPECIALTY_PREFIX):
        return Command(
            kind=CommandKind.SELECT_SPECIALTY,
            text=message,
            specialty=stripped[len(_SPECIALTY_PREFIX):],
        )

    if stripped.startswith(_DOCTOR_PREFIX):
        rest = stripped[len(_DOCTOR_PREFIX):]
        doctor, _, specialty = rest.rpartition(":")
        if not doctor:
            doctor, specialty = rest, None
        return Command(kind=CommandKind.SELECT_DOCTOR, text=message, doctor=doctor, specialty=specialty)

    if stripped.startswith(_TIMESLOT_PREFIX):
        slot, doctor, specialty = _split_timeslot(stripped[len(_TIMESLOT_PREFIX):])
        return Command(
            kind=CommandKind.SELECT_TIMESLOT,
            text=message,
            time_slot=slot,
            doctor=doctor,
            specialty=specialty,
        )

    return Command(kind=CommandKind.TEXT, text=message)


_ACTION_COMMANDS = {
    ActionType.MEDICAL_INQUIRY: CommandKind.MEDICAL_INQUIRY,
    ActionType.SELECT_SPECIALTY: CommandKind.SELECT_SPECIALTY,
    ActionType.SELECT_DOCTOR: CommandKind.SELECT_DOCTOR,
    ActionType.SELECT_TIMESLOT: CommandKind.SELECT_TIMESLOT,
    ActionType.CONFIRM_APPOINTMENT: CommandKind.CONFIRM,
    ActionType.CANCEL_APPOINTMENT: CommandKind.CANCEL,
    ActionType.RETURN_BACK: CommandKind.RETURN_BACK,
}


def from_action(action: ActionPayload) -> Command:
    """Decode a structured action payload."""
    if action.type == ActionType.REPLY:
        return parse_message(action.text or "")
    return Command(
        kind=_ACTION_COMMANDS[action.type],
        text=action.type.value,
        specialty=action.specialty,
        doctor=action.doctor,
        time_slot=action.time_slot,
    )
