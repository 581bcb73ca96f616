"""Stage-indexed conversation controller.

One public coroutine, ``ConversationEngine.handle_message``, takes the session
state and an inbound message, mutates the state in place and returns the
reply envelope for the client. Order of evaluation for every turn:

1. Control messages ``start`` / ``end`` reset the session.
2. Free-text messages are classified: a greeting, then an appointment
   request, pre-empt the stage logic. Typed commands and ``return_back`` are
   never classified.
3. The handler for the current stage interprets the command.

``is_medical_inquiry`` is true exactly while the session sits in the medical
Q&A stage; every stage change goes through ``_enter`` to keep it that way.
"""
import uuid
from typing import Awaitable, Callable, Dict, Optional, Protocol, Union

from appointment_bot.config.constants import ConversationConfig
from appointment_bot.config.prompts import ERROR_PROMPTS
from appointment_bot.core.classifiers import (
    is_appointment_related,
    is_greeting,
    is_medical_related,
    is_valid_email,
    normalize,
)
from appointment_bot.core.commands import Command, CommandKind, parse_message
from appointment_bot.core.directory import (
    SPECIALTIES,
    TIME_SLOTS,
    doctors_for,
    find_doctor,
    find_specialty,
    find_time_slot,
)
from appointment_bot.core.models import (
    ActionType,
    BookingProposal,
    ConversationState,
    ReplyEnvelope,
    Stage,
    SuggestedAction,
)
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import chat_errors, track_chat_turn, track_intent_override
from appointment_bot.utils.structured_logging import log_error

logger = get_logger(__name__)

MAIN_MENU_QUESTION = "Do you want to book an appointment or ask a medical-related question?"
SPECIALTY_PROMPT = "Please select a specialty or return back:"
MEDICAL_PROMPT = "Please ask your medical-related question:"


class MedicalAnswerer(Protocol):
    async def answer(self, question: str) -> str:
        ...


def propose_booking(state: ConversationState, reference: Optional[str] = None) -> Optional[BookingProposal]:
    """Build the booking the session currently points at.

    Returns None unless email, specialty, doctor and slot are all recorded.
    Does not modify the state; the caller decides whether to keep the reference.
    """
    if not (state.user_email and state.selected_specialty and state.selected_doctor and state.selected_time_slot):
        return None
    return BookingProposal(
        booking_reference=reference or state.booking_reference or uuid.uuid4().hex,
        patient_email=state.user_email,
        doctor_email=state.selected_doctor.email,
        doctor_name=state.selected_doctor.name,
        specialty=state.selected_specialty,
        time_slot=state.selected_time_slot,
    )


# =============================================================================
# Reply builders
# =============================================================================

def _return_back_action() -> SuggestedAction:
    return SuggestedAction(label="Return Back", action=ActionType.RETURN_BACK)


def _main_menu(reply: str) -> ReplyEnvelope:
    return ReplyEnvelope(
        reply=reply,
        actions=[
            SuggestedAction(label="Yes", action=ActionType.REPLY, text="Yes"),
            SuggestedAction(label="No", action=ActionType.REPLY, text="No"),
            SuggestedAction(label="Ask Medical Related", action=ActionType.MEDICAL_INQUIRY),
        ],
        hide_input=True,
    )


def _specialty_menu(reply: str) -> ReplyEnvelope:
    actions = [
        SuggestedAction(label=specialty, action=ActionType.SELECT_SPECIALTY, specialty=specialty)
        for specialty in SPECIALTIES
    ]
    actions.append(_return_back_action())
    return ReplyEnvelope(reply=reply, actions=actions, disable_input=True, hide_input=True)


def _doctor_menu(state: ConversationState, reply: str) -> ReplyEnvelope:
    doctors = doctors_for(state.selected_specialty)
    if not doctors:
        return _selection_lost("specialty")
    actions = [
        SuggestedAction(
            label=doctor.name,
            action=ActionType.SELECT_DOCTOR,
            doctor=doctor.name,
            specialty=state.selected_specialty,
        )
        for doctor in doctors
    ]
    actions.append(_return_back_action())
    return ReplyEnvelope(reply=reply, actions=actions, disable_input=True, hide_input=True)


def _slot_menu(state: ConversationState, reply: str) -> ReplyEnvelope:
    if state.selected_doctor is None:
        return _selection_lost("doctor")
    actions = [
        SuggestedAction(
            label=slot,
            action=ActionType.SELECT_TIMESLOT,
            time_slot=slot,
            doctor=state.selected_doctor.name,
            specialty=state.selected_specialty,
        )
        for slot in TIME_SLOTS
    ]
    actions.append(_return_back_action())
    return ReplyEnvelope(reply=reply, actions=actions, disable_input=True, hide_input=True)


def _confirm_prompt(reply: str, proposal: Optional[BookingProposal]) -> ReplyEnvelope:
    return ReplyEnvelope(
        reply=reply,
        actions=[
            SuggestedAction(label="Confirm", action=ActionType.CONFIRM_APPOINTMENT, booking=proposal),
            SuggestedAction(label="Cancel", action=ActionType.CANCEL_APPOINTMENT),
        ],
        disable_input=True,
        hide_input=True,
    )


def _medical_prompt(reply: str) -> ReplyEnvelope:
    return ReplyEnvelope(reply=reply, actions=[_return_back_action()])


def _selection_lost(what: str) -> ReplyEnvelope:
    return ReplyEnvelope(
        reply=f"It seems like the {what} was not properly selected. Please return back and try again.",
        actions=[_return_back_action()],
        disable_input=True,
        hide_input=True,
    )


# =============================================================================
# Engine
# =============================================================================

Handler = Callable[[ConversationState, Command], Awaitable[ReplyEnvelope]]


class ConversationEngine:
    """Drives one chat session through the booking dialog."""

    def __init__(self, medical_qa: MedicalAnswerer):
        self.medical_qa = medical_qa
        self._handlers: Dict[int, Handler] = {
            Stage.ENTRY: self._handle_entry,
            Stage.WARM_UP: self._handle_warm_up,
            Stage.COLLECTING_NAME: self._handle_name,
            Stage.COLLECTING_EMAIL: self._handle_email,
            Stage.MAIN_MENU: self._handle_main_menu,
            Stage.SPECIALTY_SELECTION: self._handle_specialty,
            Stage.DOCTOR_SELECTION: self._handle_doctor,
            Stage.TIME_SLOT_SELECTION: self._handle_time_slot,
            Stage.CONFIRMATION: self._handle_confirmation,
            Stage.MEDICAL_INQUIRY: self._handle_medical_inquiry,
        }

    async def handle_message(
        self,
        state: ConversationState,
        message: Union[str, Command]
    ) -> ReplyEnvelope:
        """Process one inbound message.

        Never raises for message content. Internal faults are converted into a
        Return-Back reply with the session moved to the main menu.
        """
        command = message if isinstance(message, Command) else parse_message(message)
        from_stage = state.stage

        if command.kind == CommandKind.END:
            state.reset()
            state.touch()
            logger.info(f"Session {state.session_id} ended by client")
            return ReplyEnvelope(silent=True)

        if command.kind == CommandKind.START:
            state.reset()
            logger.info(f"Session {state.session_id} restarted")

        try:
            envelope = await self._dispatch(state, command)
        except Exception as e:
            log_error(logger, e, "Chat processing failed", session_id=state.session_id)
            chat_errors.labels(error_type=type(e).__name__).inc()
            self._enter(state, Stage.MAIN_MENU)
            envelope = ReplyEnvelope(
                reply=ERROR_PROMPTS["system_error"],
                actions=[_return_back_action()],
                disable_input=True,
                hide_input=True,
            )

        envelope.stage = state.stage
        envelope.is_medical_inquiry = state.is_medical_inquiry
        state.touch()
        track_chat_turn(from_stage, state.stage)
        return envelope

    async def _dispatch(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if command.is_free_text:
            if is_greeting(command.text):
                track_intent_override("greeting")
                return self._greet(state)
            if is_appointment_related(command.text):
                track_intent_override("appointment")
                return self._appointment_intent(state)

        handler = self._handlers.get(state.stage, self._handle_unknown_stage)
        return await handler(state, command)

    @staticmethod
    def _enter(state: ConversationState, stage: Stage) -> None:
        """Move to ``stage``, keeping the medical flag tied to the Q&A stage."""
        if state.stage != stage:
            logger.debug(f"Session {state.session_id}: stage {state.stage} -> {int(stage)}")
        state.stage = stage
        state.is_medical_inquiry = stage == Stage.MEDICAL_INQUIRY

    # -------------------------------------------------------------------------
    # Cross-cutting intents
    # -------------------------------------------------------------------------

    def _greet(self, state: ConversationState) -> ReplyEnvelope:
        """Answer a greeting with the prompt the current stage is waiting on."""
        stage = state.stage

        if stage in (Stage.ENTRY, Stage.WARM_UP):
            self._enter(state, Stage.COLLECTING_NAME)
            return ReplyEnvelope(reply="Hi there! May I know your name?")
        if stage == Stage.COLLECTING_NAME:
            return ReplyEnvelope(reply="Hello! Please provide your name.")
        if stage == Stage.COLLECTING_EMAIL:
            return ReplyEnvelope(reply=f"Hi {state.user_name}! Please share your email ID.")
        if stage == Stage.MAIN_MENU:
            return _main_menu(f"Greetings! {MAIN_MENU_QUESTION}")
        if stage == Stage.SPECIALTY_SELECTION:
            return _specialty_menu("Hi! Please select a specialty or return back:")
        if stage == Stage.DOCTOR_SELECTION:
            return _doctor_menu(
                state, f"Hello! Please select a doctor for {state.selected_specialty} or return back:"
            )
        if stage == Stage.TIME_SLOT_SELECTION:
            doctor_name = state.selected_doctor.name if state.selected_doctor else ""
            return _slot_menu(state, f"Hi! Please select a time slot for {doctor_name} or return back:")
        if stage == Stage.CONFIRMATION:
            return _confirm_prompt(
                "Hello! Please confirm or cancel your appointment.",
                propose_booking(state),
            )
        if stage == Stage.MEDICAL_INQUIRY:
            self._enter(state, Stage.MEDICAL_INQUIRY)
            return _medical_prompt(
                "Hello! I'm here to help with your medical questions. Please ask something "
                "like 'What causes leg pain?' or select 'Return Back'."
            )

        self._enter(state, Stage.MAIN_MENU)
        return _main_menu(f"Hello! {MAIN_MENU_QUESTION}")

    def _appointment_intent(self, state: ConversationState) -> ReplyEnvelope:
        """Jump towards the specialty menu, collecting name and email first."""
        if not state.user_name:
            self._enter(state, Stage.COLLECTING_NAME)
            return ReplyEnvelope(reply="May I know your name?")
        if not state.user_email:
            self._enter(state, Stage.COLLECTING_EMAIL)
            return ReplyEnvelope(
                reply=f"Hi {state.user_name}! Can you please send your email ID for communication?"
            )
        self._enter(state, Stage.SPECIALTY_SELECTION)
        return _specialty_menu(SPECIALTY_PROMPT)

    # -------------------------------------------------------------------------
    # Stage handlers
    # -------------------------------------------------------------------------

    async def _handle_entry(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        self._enter(state, Stage.WARM_UP)
        return ReplyEnvelope(reply="How can I assist you today?")

    async def _handle_warm_up(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        self._enter(state, Stage.COLLECTING_NAME)
        return ReplyEnvelope(reply="May I know your name?")

    async def _handle_name(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        name = command.text.strip()
        if not command.is_free_text or len(name) < ConversationConfig.MIN_NAME_LENGTH:
            return ReplyEnvelope(reply="Please provide a valid name.")

        # A recorded name is kept for the rest of the session
        if not state.user_name:
            state.user_name = name
        self._enter(state, Stage.COLLECTING_EMAIL)
        return ReplyEnvelope(
            reply=f"Hi {state.user_name}! Can you please send your email ID for communication?"
        )

    async def _handle_email(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if not command.is_free_text or not is_valid_email(command.text):
            return ReplyEnvelope(reply="Please enter a valid email address.")

        state.user_email = command.text.strip()
        self._enter(state, Stage.MAIN_MENU)
        return _main_menu(f"Thanks! {MAIN_MENU_QUESTION}")

    async def _handle_main_menu(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        """Yes / No / medical question choice."""
        normalized = normalize(command.text) if command.is_free_text else ""

        if command.kind == CommandKind.RETURN_BACK:
            return _main_menu(MAIN_MENU_QUESTION)

        if normalized == "yes" or (command.is_free_text and is_appointment_related(command.text)):
            self._enter(state, Stage.SPECIALTY_SELECTION)
            return _specialty_menu(SPECIALTY_PROMPT)

        if normalized == "no":
            self._enter(state, Stage.MAIN_MENU)
            return _main_menu("Okay, if you change your mind, just say 'hello' or 'book appointment'.")

        if command.kind == CommandKind.MEDICAL_INQUIRY or (
            command.is_free_text and is_medical_related(command.text)
        ):
            self._enter(state, Stage.MEDICAL_INQUIRY)
            return _medical_prompt(MEDICAL_PROMPT)

        return _main_menu(f"I didn't understand. {MAIN_MENU_QUESTION}")

    async def _handle_specialty(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if command.kind == CommandKind.SELECT_SPECIALTY:
            specialty = find_specialty(command.specialty)
            if specialty is None:
                return _specialty_menu("Invalid specialty selected. Please choose from the list or return back:")

            if specialty != state.selected_specialty:
                state.selected_doctor = None
                state.selected_time_slot = None
                state.booking_reference = None
            state.selected_specialty = specialty

            if not doctors_for(specialty):
                return _specialty_menu(
                    f"No doctors found for {specialty}. Please select another specialty or return back:"
                )
            self._enter(state, Stage.DOCTOR_SELECTION)
            return _doctor_menu(state, f"Great! Here are the doctors available for {specialty}:")

        if command.kind == CommandKind.RETURN_BACK:
            self._enter(state, Stage.MAIN_MENU)
            return _main_menu(MAIN_MENU_QUESTION)

        return _specialty_menu("Please select a specialty from the list or return back:")

    async def _handle_doctor(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if command.kind == CommandKind.SELECT_DOCTOR:
            if not doctors_for(state.selected_specialty):
                return _selection_lost("specialty")

            doctor = find_doctor(state.selected_specialty, command.doctor)
            if doctor is None:
                return _doctor_menu(
                    state,
                    f'Doctor "{command.doctor}" not found for {state.selected_specialty}. '
                    "Please select a doctor from the list or return back:",
                )

            if doctor != state.selected_doctor:
                state.selected_time_slot = None
                state.booking_reference = None
            state.selected_doctor = doctor
            self._enter(state, Stage.TIME_SLOT_SELECTION)
            return _slot_menu(state, f"You selected {doctor.name}. Now, please choose an available time slot:")

        if command.kind == CommandKind.RETURN_BACK:
            self._enter(state, Stage.SPECIALTY_SELECTION)
            return _specialty_menu(SPECIALTY_PROMPT)

        return _doctor_menu(state, "Please select a doctor from the list or return back:")

    async def _handle_time_slot(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if command.kind == CommandKind.SELECT_TIMESLOT:
            if state.selected_doctor is None:
                return _selection_lost("doctor")

            slot = find_time_slot(command.time_slot)
            if slot is None:
                return _slot_menu(state, "Invalid time slot selected. Please choose from the list or return back:")

            if slot != state.selected_time_slot:
                state.booking_reference = None
            state.selected_time_slot = slot
            proposal = propose_booking(state)
            state.booking_reference = proposal.booking_reference if proposal else None
            self._enter(state, Stage.CONFIRMATION)
            return _confirm_prompt(
                f"Okay, you want to book an appointment with {state.selected_doctor.name} for "
                f"{state.selected_specialty} at {slot}. Please confirm to finalize.",
                proposal,
            )

        if command.kind == CommandKind.RETURN_BACK:
            self._enter(state, Stage.DOCTOR_SELECTION)
            return _doctor_menu(state, f"Please select a doctor for {state.selected_specialty} or return back:")

        return _slot_menu(state, "Please select a time slot or return back:")

    async def _handle_confirmation(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        """Confirm only acknowledges; the notification send is a separate booking commit."""
        if command.kind == CommandKind.CONFIRM:
            proposal = propose_booking(state)
            if proposal is None:
                self._enter(state, Stage.SPECIALTY_SELECTION)
                return _specialty_menu(
                    "Your booking details are incomplete. Please select a specialty to start again:"
                )
            self._enter(state, Stage.ENTRY)
            return ReplyEnvelope(
                reply="Booking your appointment...",
                disable_input=True,
                hide_input=True,
                booking=proposal,
            )

        if command.kind == CommandKind.CANCEL:
            state.selected_time_slot = None
            state.booking_reference = None
            self._enter(state, Stage.MAIN_MENU)
            return _main_menu("Appointment cancelled. How else can I help?")

        return _confirm_prompt("Please confirm or cancel your appointment.", propose_booking(state))

    async def _handle_medical_inquiry(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        if command.kind == CommandKind.RETURN_BACK:
            self._enter(state, Stage.MAIN_MENU)
            return _main_menu(MAIN_MENU_QUESTION)

        question = command.text.strip()
        if not question:
            return _medical_prompt(
                "I'm not sure how to respond. Please ask a medical-related question or select 'Return Back'."
            )

        answer = await self.medical_qa.answer(question)
        self._enter(state, Stage.MEDICAL_INQUIRY)
        return _medical_prompt(answer)

    async def _handle_unknown_stage(self, state: ConversationState, command: Command) -> ReplyEnvelope:
        logger.error(f"Invalid stage {state.stage} for session {state.session_id}")
        self._enter(state, Stage.MAIN_MENU)
        return _main_menu(MAIN_MENU_QUESTION)
