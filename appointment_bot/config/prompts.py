"""Prompts and fixed reply strings."""

MEDICAL_QA_SYSTEM_PROMPT = (
    "You are a medical information assistant. Provide accurate and concise answers "
    "to medical-related questions, limiting responses to approximately {max_lines} lines. "
    "Do not provide personal medical advice or diagnoses, but offer general information. "
    "If the question is unclear or not medical-related, politely redirect the user to "
    "ask a relevant medical question."
)

MEDICAL_QA_FALLBACK = (
    "Sorry, I couldn't process your medical question at this time. "
    "Please try again or ask another question."
)

ERROR_PROMPTS = {
    "system_error": "Sorry, something went wrong while processing your message. Please try again.",
    "no_message": "No message provided",
    "missing_booking_fields": "Missing required fields",
    "booking_failed": "Failed to send confirmation emails",
}
