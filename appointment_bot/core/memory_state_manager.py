"""In-memory implementation of the chat session store."""
import asyncio
import time
from typing import Callable, Dict, Optional

from appointment_bot.config.constants import SessionConfig
from appointment_bot.core.models import ConversationState
from appointment_bot.core.state_manager_base import StateManagerBase
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import active_sessions, track_state_operation

logger = get_logger(__name__)


class InMemoryStateManager(StateManagerBase):
    """In-memory implementation of the session store.

    Stores copies of the state in a Python dictionary. Fast and simple, but:
    - State is lost on restart
    - Cannot scale horizontally

    Use RedisStateManager when several workers must share sessions.
    """

    backend = "memory"

    def __init__(
        self,
        ttl_seconds: int = 1800,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._states: Dict[str, ConversationState] = {}
        self._expires_at: Dict[str, float] = {}
        self._last_purge = clock()
        self._lock = asyncio.Lock()

    def _is_expired(self, session_id: str, now: float) -> bool:
        return self._expires_at.get(session_id, 0.0) <= now

    def _drop(self, session_id: str) -> None:
        self._states.pop(session_id, None)
        self._expires_at.pop(session_id, None)

    def _purge_expired(self, now: float) -> None:
        if now - self._last_purge < SessionConfig.PURGE_INTERVAL_SEC:
            return
        expired = [sid for sid in self._states if self._is_expired(sid, now)]
        for session_id in expired:
            self._drop(session_id)
        self._last_purge = now
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")

    async def create_state(self, session_id: str) -> ConversationState:
        """Create new session state."""
        start = time.time()
        async with self._lock:
            now = self._clock()
            self._purge_expired(now)
            state = ConversationState(session_id=session_id)
            self._states[session_id] = state.model_copy(deep=True)
            self._expires_at[session_id] = now + self.ttl_seconds
            active_sessions.set(len(self._states))
        logger.info(f"Created session state for {session_id}")
        track_state_operation("create", self.backend, time.time() - start)
        return state

    async def get_state(self, session_id: str) -> Optional[ConversationState]:
        """Get session state, or None when unknown or expired."""
        start = time.time()
        async with self._lock:
            stored = self._states.get(session_id)
            if stored is not None and self._is_expired(session_id, self._clock()):
                self._drop(session_id)
                active_sessions.set(len(self._states))
                logger.info(f"Session {session_id} expired")
                stored = None
            state = stored.model_copy(deep=True) if stored is not None else None
        track_state_operation("get", self.backend, time.time() - start)
        return state

    async def save_state(self, state: ConversationState) -> None:
        """Store the state and restart its expiry period."""
        start = time.time()
        async with self._lock:
            self._states[state.session_id] = state.model_copy(deep=True)
            self._expires_at[state.session_id] = self._clock() + self.ttl_seconds
            active_sessions.set(len(self._states))
        track_state_operation("save", self.backend, time.time() - start)

    async def cleanup_state(self, session_id: str) -> None:
        """Remove session state."""
        async with self._lock:
            if session_id in self._states:
                self._drop(session_id)
                active_sessions.set(len(self._states))
                logger.info(f"Cleaned up state for {session_id}")

    async def get_active_sessions_count(self) -> int:
        async with self._lock:
            now = self._clock()
            return sum(1 for sid in self._states if not self._is_expired(sid, now))
