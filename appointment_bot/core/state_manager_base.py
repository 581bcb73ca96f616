"""Abstract base class for chat session stores."""
import asyncio
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from appointment_bot.core.models import ConversationState


class StateManagerBase(ABC):
    """Abstract base class for managing chat session state.

    Implementations can use different backends (in-memory, Redis, etc.)
    while maintaining a consistent interface. Sessions expire after a period
    of inactivity; every save restarts the period.
    """

    backend = "base"

    def __init__(self):
        self._session_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @abstractmethod
    async def create_state(self, session_id: str) -> ConversationState:
        """Create and store a fresh session.

        Args:
            session_id: Opaque session identifier

        Returns:
            Newly created conversation state
        """
        pass

    @abstractmethod
    async def get_state(self, session_id: str) -> Optional[ConversationState]:
        """Get session state by id.

        Returns:
            Conversation state if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def save_state(self, state: ConversationState) -> None:
        """Persist the state and restart its expiry period."""
        pass

    @abstractmethod
    async def cleanup_state(self, session_id: str) -> None:
        """Remove a session."""
        pass

    @abstractmethod
    async def get_active_sessions_count(self) -> int:
        pass

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass

    async def get_or_create_state(self, session_id: str) -> ConversationState:
        """Return the live session for ``session_id``, creating it when absent or expired."""
        state = await self.get_state(session_id)
        if state is None:
            state = await self.create_state(session_id)
        return state

    @asynccontextmanager
    async def session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Serialize turns of one session within this process.

        Locks are dropped automatically once no request holds or awaits them.
        """
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        async with lock:
            yield
