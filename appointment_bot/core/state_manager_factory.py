"""Factory for creating the session store selected by configuration."""
from typing import Optional

from redis.asyncio import Redis

from appointment_bot.config.settings import Settings, get_settings
from appointment_bot.core.memory_state_manager import InMemoryStateManager
from appointment_bot.core.redis_state_manager import RedisStateManager
from appointment_bot.core.state_manager_base import StateManagerBase
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.metrics import redis_connected

logger = get_logger(__name__)


class StateManagerFactory:
    """Factory for creating state managers based on configuration."""

    _instance: Optional[StateManagerBase] = None

    @classmethod
    async def create_state_manager(cls, settings: Optional[Settings] = None) -> StateManagerBase:
        """Create (once) and return the process-wide session store."""
        if cls._instance is not None:
            return cls._instance

        settings = settings or get_settings()

        if settings.use_redis:
            logger.info("Initializing Redis-backed session store")
            cls._instance = await cls._create_redis_manager(settings)
        else:
            logger.info("Initializing in-memory session store")
            cls._instance = InMemoryStateManager(ttl_seconds=settings.session_ttl_seconds)

        return cls._instance

    @classmethod
    async def _create_redis_manager(cls, settings: Settings) -> StateManagerBase:
        """Connect to Redis, falling back to the in-memory store when unreachable."""
        redis_client = None
        try:
            if settings.redis_url:
                redis_client = Redis.from_url(settings.redis_url, encoding="utf-8")
            else:
                redis_password = settings.get_redis_password()
                redis_client = Redis(
                    host=settings.redis_host,
                    port=settings.redis_port,
                    db=settings.redis_db,
                    password=redis_password if redis_password else None,
                    ssl=settings.redis_ssl,
                    encoding="utf-8",
                )

            await redis_client.ping()
            redis_connected.set(1)
            logger.info(
                "Redis connection established",
                extra={"host": settings.redis_host, "port": settings.redis_port, "db": settings.redis_db}
            )
            return RedisStateManager(redis_client, ttl_seconds=settings.session_ttl_seconds)

        except Exception as e:
            redis_connected.set(0)
            logger.error(
                f"Failed to connect to Redis: {e}. Falling back to in-memory session store.",
                exc_info=True
            )
            if redis_client is not None:
                await redis_client.aclose()
            return InMemoryStateManager(ttl_seconds=settings.session_ttl_seconds)

    @classmethod
    async def close(cls) -> None:
        """Release the store's connections and forget the instance."""
        if cls._instance is not None:
            await cls._instance.close()
        cls._instance = None

    @classmethod
    def get_instance(cls) -> Optional[StateManagerBase]:
        return cls._instance


async def get_state_manager() -> StateManagerBase:
    """Get or create the global session store. Usable as a FastAPI dependency."""
    return await StateManagerFactory.create_state_manager()
