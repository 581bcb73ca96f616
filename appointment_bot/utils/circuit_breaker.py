"""Circuit breaker implementation for external services.

Circuit breakers prevent cascading failures when external services are unavailable.
When a service fails repeatedly, the circuit "opens" and fails fast instead of
waiting for timeouts.

States:
- CLOSED: Normal operation, requests flow through
- OPEN: Service failing, immediately return error (fail fast)
- HALF-OPEN: After cooldown, try one request to check if service recovered

Usage:
    from appointment_bot.utils.circuit_breaker import groq_breaker, with_circuit_breaker

    result = await with_circuit_breaker(
        groq_breaker,
        async_function,
        arg1, arg2
    )
"""
from typing import Awaitable, Callable, TypeVar
from pybreaker import CircuitBreaker, CircuitBreakerListener as BaseListener

from appointment_bot.config.constants import CircuitBreakerConfig
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import (
    circuit_breaker_state,
    circuit_breaker_trips,
)

logger = get_logger(__name__)

T = TypeVar('T')


class CircuitBreakerListener(BaseListener):
    """Listener for circuit breaker state changes and metrics."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb: CircuitBreaker, old_state, new_state):
        """Called when the circuit breaker changes state."""
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        logger.warning(
            f"Circuit breaker '{self.name}' state changed: {old_name} -> {new_name}"
        )
        circuit_breaker_state.labels(service=self.name).set(
            1 if new_name == "open" else 0
        )
        if new_name == "open":
            circuit_breaker_trips.labels(service=self.name).inc()

    def failure(self, cb: CircuitBreaker, exc: BaseException):
        """Called when a call fails."""
        logger.debug(
            f"Circuit breaker '{self.name}' recorded failure: {type(exc).__name__}"
        )

    def success(self, cb: CircuitBreaker):
        """Called when a call succeeds."""
        pass  # Don't log successes to avoid noise


# =============================================================================
# Circuit Breakers for External Services
# =============================================================================

# Groq - medical Q&A provider
groq_breaker = CircuitBreaker(
    fail_max=CircuitBreakerConfig.FAIL_MAX,
    reset_timeout=CircuitBreakerConfig.RESET_TIMEOUT_SEC,
    listeners=[CircuitBreakerListener("groq")],
    name="groq",
)

# SMTP - Email service
smtp_breaker = CircuitBreaker(
    fail_max=CircuitBreakerConfig.FAIL_MAX,
    reset_timeout=CircuitBreakerConfig.RESET_TIMEOUT_SEC,
    listeners=[CircuitBreakerListener("smtp")],
    name="smtp",
)


async def with_circuit_breaker(
    breaker: CircuitBreaker,
    func: Callable[..., Awaitable[T]],
    *args,
    **kwargs
) -> T:
    """Execute an async function with circuit breaker protection.

    Uses the breaker's ``calling()`` context so no tornado dependency is
    needed for coroutine support.

    Raises:
        CircuitBreakerError: If the circuit is open

    Example:
        result = await with_circuit_breaker(
            groq_breaker,
            client.chat.completions.create,
            model="llama3-70b-8192",
            messages=[...]
        )
    """
    with breaker.calling():
        return await func(*args, **kwargs)


def get_circuit_status() -> dict:
    """Get the status of all circuit breakers.

    Returns:
        Dictionary with circuit breaker names and their states
    """
    breakers = {
        "groq": groq_breaker,
        "smtp": smtp_breaker,
    }

    return {
        name: {
            "state": breaker.current_state,
            "fail_count": breaker.fail_counter,
        }
        for name, breaker in breakers.items()
    }
