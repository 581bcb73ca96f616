"""Unit tests for the conversation state machine."""
import pytest

from appointment_bot.config.prompts import ERROR_PROMPTS, MEDICAL_QA_FALLBACK
from appointment_bot.core.commands import Command, CommandKind
from appointment_bot.core.directory import SPECIALTIES, find_doctor
from appointment_bot.core.models import ActionType, ConversationState, Stage
from appointment_bot.core.state_machine import propose_booking


def labels(envelope):
    return [action.label for action in envelope.actions]


@pytest.mark.unit
class TestControlMessages:
    """Test start / end handling."""

    @pytest.mark.asyncio
    async def test_start_resets_and_runs_entry(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "start")

        assert envelope.reply == "How can I assist you today?"
        assert main_menu_state.stage == Stage.WARM_UP
        assert main_menu_state.user_name is None
        assert main_menu_state.user_email is None

    @pytest.mark.asyncio
    async def test_end_resets_silently(self, engine, confirmation_state):
        envelope = await engine.handle_message(confirmation_state, "end")

        assert envelope.silent is True
        assert envelope.reply == ""
        assert envelope.actions == []
        assert envelope.is_medical_inquiry is False
        assert confirmation_state.stage == Stage.ENTRY
        assert confirmation_state.selected_doctor is None
        assert confirmation_state.session_id == "session-1234567890abcdef"

    @pytest.mark.asyncio
    async def test_stage_one_asks_for_name(self, engine, conversation_state):
        conversation_state.stage = Stage.WARM_UP
        envelope = await engine.handle_message(conversation_state, "okay")

        assert envelope.reply == "May I know your name?"
        assert conversation_state.stage == Stage.COLLECTING_NAME


@pytest.mark.unit
class TestOnboarding:
    """Test name and email collection."""

    @pytest.mark.asyncio
    async def test_greeting_name_email_sequence(self, engine, conversation_state):
        envelope = await engine.handle_message(conversation_state, "hi")
        assert envelope.reply == "Hi there! May I know your name?"
        assert envelope.stage == Stage.COLLECTING_NAME

        envelope = await engine.handle_message(conversation_state, "J")
        assert envelope.reply == "Please provide a valid name."
        assert conversation_state.stage == Stage.COLLECTING_NAME

        envelope = await engine.handle_message(conversation_state, "John")
        assert envelope.reply == "Hi John! Can you please send your email ID for communication?"
        assert conversation_state.user_name == "John"
        assert conversation_state.stage == Stage.COLLECTING_EMAIL

        envelope = await engine.handle_message(conversation_state, "not-an-email")
        assert envelope.reply == "Please enter a valid email address."
        assert conversation_state.stage == Stage.COLLECTING_EMAIL

        envelope = await engine.handle_message(conversation_state, "john@x.com")
        assert conversation_state.user_email == "john@x.com"
        assert conversation_state.stage == Stage.MAIN_MENU
        assert labels(envelope) == ["Yes", "No", "Ask Medical Related"]
        assert envelope.hide_input is True

    @pytest.mark.asyncio
    async def test_two_character_name_is_accepted(self, engine, conversation_state):
        conversation_state.stage = Stage.COLLECTING_NAME
        await engine.handle_message(conversation_state, "Jo")

        assert conversation_state.user_name == "Jo"

    @pytest.mark.asyncio
    async def test_control_token_is_not_a_name(self, engine, conversation_state):
        conversation_state.stage = Stage.COLLECTING_NAME
        envelope = await engine.handle_message(conversation_state, "return_back")

        assert envelope.reply == "Please provide a valid name."
        assert conversation_state.user_name is None

    @pytest.mark.asyncio
    async def test_recorded_name_is_never_overwritten(self, engine, conversation_state):
        conversation_state.stage = Stage.COLLECTING_NAME
        conversation_state.user_name = "John"

        envelope = await engine.handle_message(conversation_state, "Alice")

        assert conversation_state.user_name == "John"
        assert envelope.reply.startswith("Hi John!")

    @pytest.mark.asyncio
    async def test_typed_command_is_not_an_email(self, engine, conversation_state):
        conversation_state.stage = Stage.COLLECTING_EMAIL
        conversation_state.user_name = "John"
        await engine.handle_message(conversation_state, "select_specialty:a@b.com")

        assert conversation_state.user_email is None
        assert conversation_state.stage == Stage.COLLECTING_EMAIL


@pytest.mark.unit
class TestGreetingOverride:
    """Test the stage-aware greeting replies."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", list(Stage))
    async def test_greeting_keeps_captured_information(self, engine, confirmation_state, stage):
        confirmation_state.stage = stage
        confirmation_state.is_medical_inquiry = stage == Stage.MEDICAL_INQUIRY

        envelope = await engine.handle_message(confirmation_state, "hello")

        assert envelope.reply
        assert confirmation_state.user_name == "John"
        assert confirmation_state.user_email == "john@x.com"
        assert confirmation_state.selected_specialty == "Dermatology"

    @pytest.mark.asyncio
    async def test_greeting_at_email_stage_uses_name(self, engine, conversation_state):
        conversation_state.stage = Stage.COLLECTING_EMAIL
        conversation_state.user_name = "John"

        envelope = await engine.handle_message(conversation_state, "hey")

        assert envelope.reply == "Hi John! Please share your email ID."
        assert conversation_state.stage == Stage.COLLECTING_EMAIL

    @pytest.mark.asyncio
    async def test_greeting_at_specialty_stage_rerenders_menu(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "hello")

        assert envelope.reply == "Hi! Please select a specialty or return back:"
        assert labels(envelope) == list(SPECIALTIES) + ["Return Back"]
        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION

    @pytest.mark.asyncio
    async def test_greeting_at_confirmation_reoffers_confirm(self, engine, confirmation_state):
        envelope = await engine.handle_message(confirmation_state, "hello")

        assert envelope.reply == "Hello! Please confirm or cancel your appointment."
        assert labels(envelope) == ["Confirm", "Cancel"]
        assert confirmation_state.stage == Stage.CONFIRMATION

    @pytest.mark.asyncio
    async def test_greeting_at_medical_stage_keeps_flag(self, engine, main_menu_state):
        main_menu_state.stage = Stage.MEDICAL_INQUIRY
        main_menu_state.is_medical_inquiry = True

        envelope = await engine.handle_message(main_menu_state, "hello")

        assert envelope.is_medical_inquiry is True
        assert labels(envelope) == ["Return Back"]
        assert main_menu_state.stage == Stage.MEDICAL_INQUIRY

    @pytest.mark.asyncio
    async def test_typed_selection_is_not_classified(self, engine, main_menu_state):
        # "Psychiatry" contains "hi" but arrives as a typed command
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "select_specialty:Psychiatry")

        assert main_menu_state.stage == Stage.DOCTOR_SELECTION
        assert labels(envelope) == ["Dr. Shalini Mehta", "Dr. Rohan Joshi", "Return Back"]


@pytest.mark.unit
class TestAppointmentOverride:
    """Test the appointment-intent override."""

    @pytest.mark.asyncio
    async def test_from_main_menu_goes_to_specialties(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "book appointment")

        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION
        assert envelope.is_medical_inquiry is False
        assert envelope.reply == "Please select a specialty or return back:"
        assert len(envelope.actions) == len(SPECIALTIES) + 1

    @pytest.mark.asyncio
    async def test_from_medical_stage_clears_flag(self, engine, main_menu_state):
        main_menu_state.stage = Stage.MEDICAL_INQUIRY
        main_menu_state.is_medical_inquiry = True

        envelope = await engine.handle_message(main_menu_state, "I want to see a doctor")

        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION
        assert main_menu_state.is_medical_inquiry is False
        assert envelope.is_medical_inquiry is False

    @pytest.mark.asyncio
    async def test_without_name_asks_for_name(self, engine, conversation_state):
        envelope = await engine.handle_message(conversation_state, "schedule appointment")

        assert envelope.reply == "May I know your name?"
        assert conversation_state.stage == Stage.COLLECTING_NAME

    @pytest.mark.asyncio
    async def test_without_email_asks_for_email(self, engine, conversation_state):
        conversation_state.user_name = "John"
        conversation_state.stage = Stage.COLLECTING_EMAIL

        envelope = await engine.handle_message(conversation_state, "book appointment")

        assert envelope.reply == "Hi John! Can you please send your email ID for communication?"
        assert conversation_state.stage == Stage.COLLECTING_EMAIL


@pytest.mark.unit
class TestMainMenu:
    """Test stage 4 choices."""

    @pytest.mark.asyncio
    async def test_yes_shows_specialties(self, engine, main_menu_state):
        await engine.handle_message(main_menu_state, "Yes")
        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION

    @pytest.mark.asyncio
    async def test_no_stays_on_menu(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "no")

        assert envelope.reply == "Okay, if you change your mind, just say 'hello' or 'book appointment'."
        assert main_menu_state.stage == Stage.MAIN_MENU

    @pytest.mark.asyncio
    async def test_medical_button_enters_medical_mode(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "medical_inquiry")

        assert envelope.reply == "Please ask your medical-related question:"
        assert envelope.is_medical_inquiry is True
        assert main_menu_state.stage == Stage.MEDICAL_INQUIRY

    @pytest.mark.asyncio
    async def test_medical_text_enters_medical_mode(self, engine, main_menu_state):
        await engine.handle_message(main_menu_state, "I have a fever")

        assert main_menu_state.stage == Stage.MEDICAL_INQUIRY
        assert main_menu_state.is_medical_inquiry is True

    @pytest.mark.asyncio
    async def test_unrecognized_input(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "blah")

        assert envelope.reply.startswith("I didn't understand.")
        assert main_menu_state.stage == Stage.MAIN_MENU


@pytest.mark.unit
class TestSelectionFlow:
    """Test specialty, doctor and time slot selection."""

    @pytest.mark.asyncio
    async def test_full_selection(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "select_specialty:Dermatology")
        assert envelope.reply == "Great! Here are the doctors available for Dermatology:"
        assert envelope.actions[0].message == "select_doctor:Dr. Riya Sen:Dermatology"
        assert main_menu_state.stage == Stage.DOCTOR_SELECTION

        envelope = await engine.handle_message(main_menu_state, "select_doctor:Dr. Riya Sen:Dermatology")
        assert envelope.reply == "You selected Dr. Riya Sen. Now, please choose an available time slot:"
        assert labels(envelope) == ["10:00 AM", "1:00 PM", "2:00 PM", "3:00 PM", "Return Back"]
        assert main_menu_state.stage == Stage.TIME_SLOT_SELECTION

        envelope = await engine.handle_message(main_menu_state, envelope.actions[0].message)
        assert envelope.reply == (
            "Okay, you want to book an appointment with Dr. Riya Sen for Dermatology "
            "at 10:00 AM. Please confirm to finalize."
        )
        assert main_menu_state.stage == Stage.CONFIRMATION
        assert main_menu_state.selected_time_slot == "10:00 AM"

        confirm = envelope.actions[0]
        assert confirm.action == ActionType.CONFIRM_APPOINTMENT
        assert confirm.booking.booking_reference == main_menu_state.booking_reference
        assert confirm.booking.doctor_email == "riya.sen@example.com"
        assert confirm.booking.patient_email == "john@x.com"

    @pytest.mark.asyncio
    async def test_invalid_specialty(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "select_specialty:Podiatry")

        assert envelope.reply == "Invalid specialty selected. Please choose from the list or return back:"
        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION

    @pytest.mark.asyncio
    async def test_free_text_at_specialty_stage(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "cardio please")

        assert envelope.reply == "Please select a specialty from the list or return back:"

    @pytest.mark.asyncio
    async def test_return_back_keeps_selected_specialty(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION
        await engine.handle_message(main_menu_state, "select_specialty:Cardiology")

        await engine.handle_message(main_menu_state, "return_back")
        assert main_menu_state.stage == Stage.SPECIALTY_SELECTION

        envelope = await engine.handle_message(main_menu_state, "return_back")
        assert main_menu_state.stage == Stage.MAIN_MENU
        assert main_menu_state.selected_specialty == "Cardiology"
        assert envelope.reply == "Do you want to book an appointment or ask a medical-related question?"

    @pytest.mark.asyncio
    async def test_return_back_twice_from_specialties(self, engine, main_menu_state):
        main_menu_state.stage = Stage.SPECIALTY_SELECTION

        first = await engine.handle_message(main_menu_state, "return_back")
        second = await engine.handle_message(main_menu_state, "return_back")

        for envelope in (first, second):
            assert envelope.stage == Stage.MAIN_MENU
            assert labels(envelope) == ["Yes", "No", "Ask Medical Related"]

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, engine, main_menu_state):
        main_menu_state.stage = Stage.DOCTOR_SELECTION
        main_menu_state.selected_specialty = "Dermatology"

        envelope = await engine.handle_message(main_menu_state, "select_doctor:Dr. Who:Dermatology")

        assert envelope.reply == (
            'Doctor "Dr. Who" not found for Dermatology. Please select a doctor from the list or return back:'
        )
        assert main_menu_state.stage == Stage.DOCTOR_SELECTION

    @pytest.mark.asyncio
    async def test_doctor_without_specialty(self, engine, main_menu_state):
        main_menu_state.stage = Stage.DOCTOR_SELECTION

        envelope = await engine.handle_message(main_menu_state, "select_doctor:Dr. Riya Sen:Dermatology")

        assert envelope.reply == (
            "It seems like the specialty was not properly selected. Please return back and try again."
        )
        assert labels(envelope) == ["Return Back"]

    @pytest.mark.asyncio
    async def test_changing_specialty_clears_doctor(self, engine, confirmation_state):
        confirmation_state.stage = Stage.SPECIALTY_SELECTION

        await engine.handle_message(confirmation_state, "select_specialty:Cardiology")

        assert confirmation_state.selected_doctor is None
        assert confirmation_state.selected_time_slot is None
        assert confirmation_state.booking_reference is None

    @pytest.mark.asyncio
    async def test_invalid_time_slot(self, engine, confirmation_state):
        confirmation_state.stage = Stage.TIME_SLOT_SELECTION

        envelope = await engine.handle_message(
            confirmation_state, "select_timeslot:11:00 AM:Dr. Riya Sen:Dermatology"
        )

        assert envelope.reply == "Invalid time slot selected. Please choose from the list or return back:"
        assert confirmation_state.stage == Stage.TIME_SLOT_SELECTION

    @pytest.mark.asyncio
    async def test_time_slot_formatting_noise(self, engine, confirmation_state):
        confirmation_state.stage = Stage.TIME_SLOT_SELECTION

        await engine.handle_message(confirmation_state, "select_timeslot:2:00pm:Dr. Riya Sen:Dermatology")

        assert confirmation_state.selected_time_slot == "2:00 PM"
        assert confirmation_state.stage == Stage.CONFIRMATION

    @pytest.mark.asyncio
    async def test_structured_time_slot_command(self, engine, confirmation_state):
        confirmation_state.stage = Stage.TIME_SLOT_SELECTION
        command = Command(kind=CommandKind.SELECT_TIMESLOT, text="select_timeslot", time_slot="3:00 PM")

        await engine.handle_message(confirmation_state, command)

        assert confirmation_state.selected_time_slot == "3:00 PM"

    @pytest.mark.asyncio
    async def test_return_back_from_time_slots(self, engine, confirmation_state):
        confirmation_state.stage = Stage.TIME_SLOT_SELECTION

        envelope = await engine.handle_message(confirmation_state, "return_back")

        assert envelope.reply == "Please select a doctor for Dermatology or return back:"
        assert confirmation_state.stage == Stage.DOCTOR_SELECTION


@pytest.mark.unit
class TestConfirmation:
    """Test stage 8 confirm / cancel."""

    @pytest.mark.asyncio
    async def test_confirm_acknowledges_and_attaches_booking(self, engine, confirmation_state):
        envelope = await engine.handle_message(confirmation_state, "confirm_appointment")

        assert envelope.reply == "Booking your appointment..."
        assert envelope.hide_input is True
        assert envelope.disable_input is True
        assert confirmation_state.stage == Stage.ENTRY
        assert envelope.booking.booking_reference == "ref-0001"
        assert envelope.booking.doctor_name == "Dr. Riya Sen"
        assert envelope.booking.time_slot == "10:00 AM"

    @pytest.mark.asyncio
    async def test_cancel_returns_to_menu(self, engine, confirmation_state):
        envelope = await engine.handle_message(confirmation_state, "cancel_appointment")

        assert envelope.reply == "Appointment cancelled. How else can I help?"
        assert confirmation_state.stage == Stage.MAIN_MENU
        assert confirmation_state.selected_time_slot is None
        assert confirmation_state.booking_reference is None

    @pytest.mark.asyncio
    async def test_other_input_reprompts(self, engine, confirmation_state):
        envelope = await engine.handle_message(confirmation_state, "maybe")

        assert envelope.reply == "Please confirm or cancel your appointment."
        assert confirmation_state.stage == Stage.CONFIRMATION


@pytest.mark.unit
class TestMedicalInquiry:
    """Test stage 9 question answering."""

    @pytest.fixture
    def medical_state(self, main_menu_state):
        main_menu_state.stage = Stage.MEDICAL_INQUIRY
        main_menu_state.is_medical_inquiry = True
        return main_menu_state

    @pytest.mark.asyncio
    async def test_question_is_forwarded(self, engine, medical_state, mock_medical_qa):
        envelope = await engine.handle_message(medical_state, "What causes leg pain?")

        mock_medical_qa.answer.assert_awaited_once_with("What causes leg pain?")
        assert envelope.reply == "Leg pain is commonly caused by muscle strain."
        assert labels(envelope) == ["Return Back"]
        assert envelope.is_medical_inquiry is True
        assert medical_state.stage == Stage.MEDICAL_INQUIRY

    @pytest.mark.asyncio
    async def test_fallback_answer_is_passed_through(self, engine, medical_state, mock_medical_qa):
        mock_medical_qa.answer.return_value = MEDICAL_QA_FALLBACK

        envelope = await engine.handle_message(medical_state, "What causes leg pain?")

        assert envelope.reply == MEDICAL_QA_FALLBACK
        assert medical_state.stage == Stage.MEDICAL_INQUIRY

    @pytest.mark.asyncio
    async def test_return_back_leaves_medical_mode(self, engine, medical_state):
        envelope = await engine.handle_message(medical_state, "return_back")

        assert medical_state.stage == Stage.MAIN_MENU
        assert envelope.is_medical_inquiry is False
        assert medical_state.is_medical_inquiry is False

    @pytest.mark.asyncio
    async def test_empty_question(self, engine, medical_state, mock_medical_qa):
        envelope = await engine.handle_message(medical_state, "   ")

        assert envelope.reply.startswith("I'm not sure how to respond.")
        mock_medical_qa.answer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_typed_command_text_is_forwarded(self, engine, medical_state, mock_medical_qa):
        envelope = await engine.handle_message(
            medical_state, Command(kind=CommandKind.CONFIRM, text="confirm_appointment")
        )

        mock_medical_qa.answer.assert_awaited_once_with("confirm_appointment")
        assert envelope.reply == "Leg pain is commonly caused by muscle strain."
        assert medical_state.stage == Stage.MEDICAL_INQUIRY

    @pytest.mark.asyncio
    async def test_gateway_fault_recovers_to_main_menu(self, engine, medical_state, mock_medical_qa):
        mock_medical_qa.answer.side_effect = RuntimeError("provider exploded")

        envelope = await engine.handle_message(medical_state, "What causes leg pain?")

        assert envelope.reply == ERROR_PROMPTS["system_error"]
        assert labels(envelope) == ["Return Back"]
        assert medical_state.stage == Stage.MAIN_MENU
        assert envelope.is_medical_inquiry is False

        # The recovery button leads back to the main menu
        envelope = await engine.handle_message(medical_state, envelope.actions[0].message)
        assert labels(envelope) == ["Yes", "No", "Ask Medical Related"]


@pytest.mark.unit
class TestStateConsistency:
    """Test invariants that hold across every turn."""

    @pytest.mark.asyncio
    async def test_unknown_stage_falls_back_to_menu(self, engine, main_menu_state):
        main_menu_state.stage = 42

        envelope = await engine.handle_message(main_menu_state, "okay")

        assert main_menu_state.stage == Stage.MAIN_MENU
        assert labels(envelope) == ["Yes", "No", "Ask Medical Related"]

    @pytest.mark.asyncio
    async def test_envelope_flag_mirrors_state(self, engine, main_menu_state):
        # A stale flag outside the Q&A stage is corrected on the next transition
        main_menu_state.is_medical_inquiry = True

        envelope = await engine.handle_message(main_menu_state, "Yes")

        assert envelope.is_medical_inquiry is main_menu_state.is_medical_inquiry is False

    @pytest.mark.asyncio
    async def test_legacy_buttons(self, engine, main_menu_state):
        envelope = await engine.handle_message(main_menu_state, "Yes")
        dumped = envelope.model_dump(by_alias=True, mode="json")

        assert dumped["buttons"][0] == {"text": "Cardiology", "action": "select_specialty:Cardiology"}
        assert dumped["buttons"][-1] == {"text": "Return Back", "action": "return_back"}
        assert dumped["disableInput"] is True


@pytest.mark.unit
class TestProposeBooking:
    """Test the pure booking proposal."""

    def test_incomplete_state_has_no_proposal(self, main_menu_state):
        assert propose_booking(main_menu_state) is None

    def test_proposal_does_not_modify_state(self, confirmation_state):
        confirmation_state.booking_reference = None
        before = confirmation_state.model_dump()

        proposal = propose_booking(confirmation_state)

        assert proposal is not None
        assert proposal.booking_reference
        assert confirmation_state.model_dump() == before

    def test_existing_reference_is_reused(self, confirmation_state):
        assert propose_booking(confirmation_state).booking_reference == "ref-0001"

    def test_explicit_reference_wins(self):
        state = ConversationState(
            session_id="s" * 10,
            user_email="john@x.com",
            selected_specialty="Cardiology",
            selected_doctor=find_doctor("Cardiology", "Dr. Somasekar"),
            selected_time_slot="1:00 PM",
        )
        proposal = propose_booking(state, reference="abc")

        assert proposal.booking_reference == "abc"
        assert proposal.model_dump(by_alias=True)["doctorEmail"] == "somasekar@example.com"
