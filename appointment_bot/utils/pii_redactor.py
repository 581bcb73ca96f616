"""Patient identifier redaction for log output.

Chat transcripts carry two kinds of identifiers: the patient's email address
and the name they typed. Both are masked before any chat text reaches a log
handler.
"""
import re
from typing import Dict, Iterable, Optional


class PIIRedactor:
    """Redacts patient identifiers from text."""

    def __init__(self, placeholder: str = "[REDACTED]"):
        """Initialize redactor.

        Args:
            placeholder: String to replace identifiers with (default: "[REDACTED]")
        """
        self.placeholder = placeholder
        self.email_pattern = re.compile(
            r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'
        )

    def redact(
        self,
        text: Optional[str],
        known_names: Iterable[str] = (),
        redact_level: str = "partial"
    ) -> Optional[str]:
        """Redact identifiers from text.

        Args:
            text: Text to redact
            known_names: Names already recorded for the session; each occurrence
                is replaced (case-insensitive)
            redact_level: "partial" keeps the email domain, "full" removes it

        Returns:
            Redacted text
        """
        if not text:
            return text

        if redact_level == "full":
            redacted = self.email_pattern.sub(self.placeholder, text)
        else:
            redacted = self.email_pattern.sub(self._redact_email, text)

        for name in known_names:
            if name and len(name.strip()) >= 2:
                redacted = re.sub(re.escape(name.strip()), self.placeholder, redacted, flags=re.IGNORECASE)

        return redacted

    def _redact_email(self, match) -> str:
        """Redact email, keeping domain for context (e.g., "***@example.com")."""
        email = match.group(0)
        return f"***@{email.split('@', 1)[1]}"

    def redact_dict(self, data: Dict, sensitive_keys: Iterable[str] = ("user_name", "user_email")) -> Dict:
        """Return a copy of ``data`` with sensitive keys masked and emails redacted."""
        sensitive = set(sensitive_keys)
        result = {}
        for key, value in data.items():
            if key in sensitive and value:
                result[key] = self.placeholder
            elif isinstance(value, str):
                result[key] = self.redact(value)
            elif isinstance(value, dict):
                result[key] = self.redact_dict(value, sensitive)
            else:
                result[key] = value
        return result


_redactor: Optional[PIIRedactor] = None


def get_pii_redactor() -> PIIRedactor:
    """Get the shared redactor instance."""
    global _redactor
    if _redactor is None:
        _redactor = PIIRedactor()
    return _redactor
