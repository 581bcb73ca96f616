"""Medical Q&A gateway backed by an OpenAI-compatible chat completion API."""
import asyncio
import time
from typing import Optional

from openai import AsyncOpenAI
from pybreaker import CircuitBreakerError

from appointment_bot.config.constants import LLMConfig
from appointment_bot.config.prompts import MEDICAL_QA_FALLBACK, MEDICAL_QA_SYSTEM_PROMPT
from appointment_bot.config.settings import Settings, get_settings
from appointment_bot.utils.circuit_breaker import groq_breaker, with_circuit_breaker
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import track_medical_qa

logger = get_logger(__name__)


class MedicalQAService:
    """Answers free-form medical questions with general information.

    Uses the circuit breaker pattern to fail fast when the provider is
    unavailable. Every failure mode (timeout, provider error, open circuit,
    empty completion) yields the fixed fallback answer instead of raising.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        settings = settings or get_settings()
        self.model = settings.groq_model
        self.timeout = settings.medical_qa_timeout_sec
        self.max_tokens = settings.medical_qa_max_tokens
        self.client = client or AsyncOpenAI(
            api_key=settings.get_groq_api_key() or "missing",
            base_url=settings.groq_base_url,
            max_retries=0,
        )

    async def _complete(self, question: str) -> str:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": MEDICAL_QA_SYSTEM_PROMPT.format(max_lines=LLMConfig.MAX_ANSWER_LINES),
                    },
                    {"role": "user", "content": question},
                ],
                max_tokens=self.max_tokens,
                temperature=LLMConfig.TEMPERATURE,
            ),
            timeout=self.timeout,
        )
        return (response.choices[0].message.content or "").strip()

    async def answer(self, question: str) -> str:
        """Return the provider's answer, or the fallback text on any failure."""
        start = time.time()
        try:
            content = await with_circuit_breaker(groq_breaker, self._complete, question)
        except CircuitBreakerError:
            logger.warning("Medical Q&A circuit breaker is open - returning fallback answer")
            track_medical_qa(time.time() - start, "circuit_open")
            return MEDICAL_QA_FALLBACK
        except asyncio.TimeoutError:
            logger.warning(f"Medical Q&A request timed out after {self.timeout}s")
            track_medical_qa(time.time() - start, "timeout")
            return MEDICAL_QA_FALLBACK
        except Exception as e:
            logger.error(f"Medical Q&A provider error: {e}")
            track_medical_qa(time.time() - start, "error")
            return MEDICAL_QA_FALLBACK

        if not content:
            logger.warning("Medical Q&A provider returned an empty answer")
            track_medical_qa(time.time() - start, "error")
            return MEDICAL_QA_FALLBACK

        track_medical_qa(time.time() - start, "success")
        return content
