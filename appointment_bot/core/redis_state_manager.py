"""Redis-backed implementation of the chat session store."""
import time
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from appointment_bot.config.constants import SessionConfig
from appointment_bot.core.models import ConversationState
from appointment_bot.core.state_manager_base import StateManagerBase
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import redis_connected, track_state_operation

logger = get_logger(__name__)


class RedisStateManager(StateManagerBase):
    """Redis-backed implementation of the session store.

    Provides:
    - Sessions shared by every worker
    - Persistence across restarts
    - Expiry handled by Redis TTLs

    State is stored as JSON under keys ``appointmentbot:session:{session_id}``.
    Each save rewrites the key with SETEX, which restarts the TTL.
    """

    backend = "redis"

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = SessionConfig.REDIS_KEY_PREFIX,
        ttl_seconds: int = 1800
    ):
        """Initialize Redis state manager.

        Args:
            redis_client: Async Redis client instance
            key_prefix: Prefix for Redis keys
            ttl_seconds: Inactivity period after which a session expires
        """
        super().__init__()
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _get_key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    async def _write(self, state: ConversationState) -> None:
        await self.redis.setex(
            self._get_key(state.session_id),
            self.ttl_seconds,
            state.model_dump_json()
        )

    async def create_state(self, session_id: str) -> ConversationState:
        """Create new session state in Redis."""
        start = time.time()
        state = ConversationState(session_id=session_id)
        try:
            await self._write(state)
        except RedisError as e:
            logger.error(f"Redis error creating state for {session_id}: {e}", exc_info=True)
            raise

        logger.info(
            "Created session state in Redis",
            extra={"session_id": session_id, "ttl_seconds": self.ttl_seconds}
        )
        track_state_operation("create", self.backend, time.time() - start)
        return state

    async def get_state(self, session_id: str) -> Optional[ConversationState]:
        """Get session state from Redis.

        Missing, expired and undecodable entries give None. Connection errors
        propagate so a failed read is never mistaken for an absent session.
        """
        start = time.time()
        try:
            state_json = await self.redis.get(self._get_key(session_id))
        except RedisError as e:
            logger.error(f"Redis error getting state for {session_id}: {e}", exc_info=True)
            raise
        finally:
            track_state_operation("get", self.backend, time.time() - start)

        if not state_json:
            return None

        try:
            return ConversationState.model_validate_json(state_json)
        except ValueError as e:
            logger.error(f"Error deserializing state for {session_id}: {e}", exc_info=True)
            return None

    async def save_state(self, state: ConversationState) -> None:
        """Rewrite the session and restart its TTL."""
        start = time.time()
        try:
            await self._write(state)
        except RedisError as e:
            logger.error(f"Redis error saving state for {state.session_id}: {e}", exc_info=True)
            raise
        track_state_operation("save", self.backend, time.time() - start)

    async def cleanup_state(self, session_id: str) -> None:
        """Remove session state from Redis."""
        try:
            await self.redis.delete(self._get_key(session_id))
            logger.info(f"Cleaned up state in Redis for {session_id}")
        except RedisError as e:
            logger.error(f"Redis error cleaning up state for {session_id}: {e}", exc_info=True)

    async def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            await self.redis.ping()
            redis_connected.set(1)
            return True
        except RedisError:
            redis_connected.set(0)
            return False

    async def get_active_sessions_count(self) -> int:
        """Count live session keys."""
        try:
            keys = await self.redis.keys(f"{self.key_prefix}:*")
            return len(keys)
        except RedisError as e:
            logger.error(f"Redis error counting active sessions: {e}")
            return 0

    async def close(self) -> None:
        await self.redis.aclose()
        redis_connected.set(0)
        logger.info("Redis connection closed")
