"""Unit tests for message classifiers and normalization."""
import pytest

from appointment_bot.core.classifiers import (
    is_appointment_related,
    is_greeting,
    is_medical_related,
    is_valid_email,
    matched_keywords,
    normalize,
    normalize_time_slot,
    GREETING_KEYWORDS,
)


@pytest.mark.unit
class TestNormalize:
    """Test text normalization."""

    def test_trims_collapses_and_lowercases(self):
        assert normalize("  Book   An  APPOINTMENT ") == "book an appointment"

    def test_none_becomes_empty(self):
        assert normalize(None) == ""

    def test_time_slot_spacing_variants(self):
        assert normalize_time_slot("2:00PM") == "2:00 PM"
        assert normalize_time_slot("2:00   pm") == "2:00 PM"
        assert normalize_time_slot(" 10:00 am ") == "10:00 AM"

    def test_time_slot_strips_foreign_characters(self):
        assert normalize_time_slot("1:00 P.M.") == "1:00 PM"

    def test_time_slot_empty(self):
        assert normalize_time_slot("") == ""
        assert normalize_time_slot(None) == ""


@pytest.mark.unit
class TestEmailCheck:
    """Test the permissive email shape check."""

    def test_valid_addresses(self):
        assert is_valid_email("john@x.com") is True
        assert is_valid_email("a.b+c@mail.example.org") is True

    def test_invalid_addresses(self):
        assert is_valid_email("not-an-email") is False
        assert is_valid_email("john@localhost") is False
        assert is_valid_email("") is False
        assert is_valid_email(None) is False


@pytest.mark.unit
class TestGreeting:
    """Test greeting detection."""

    def test_plain_greetings(self):
        assert is_greeting("hi") is True
        assert is_greeting("Hello there") is True
        assert is_greeting("GOOD MORNING") is True

    def test_substring_matches_are_accepted(self):
        # "hi" is contained in "this"
        assert is_greeting("this is odd") is True

    def test_non_greeting(self):
        assert is_greeting("book appointment") is False
        assert is_greeting("") is False

    def test_keywords_reported(self):
        assert matched_keywords("hey, hello", GREETING_KEYWORDS) == ["hello", "hey"]


@pytest.mark.unit
class TestAppointmentIntent:
    """Test appointment intent detection."""

    def test_phrases(self):
        assert is_appointment_related("I want to book appointment please") is True
        assert is_appointment_related("I NEED TO SEE A DOCTOR") is True
        assert is_appointment_related("could I consult a doctor") is True

    def test_single_word_is_not_enough(self):
        assert is_appointment_related("appointment") is False
        assert is_appointment_related("doctor") is False


@pytest.mark.unit
class TestMedicalIntent:
    """Test medical keyword detection."""

    def test_medical_keywords(self):
        assert is_medical_related("What causes leg pain?") is True
        assert is_medical_related("I have a fever") is True
        assert is_medical_related("tell me about MRI scans") is True

    def test_substring_overmatch_is_accepted(self):
        assert is_medical_related("a colder morning") is True

    def test_non_medical(self):
        assert is_medical_related("what is the weather today") is False
        assert is_medical_related(None) is False
