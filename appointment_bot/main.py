"""Main entry point for the appointment booking chat assistant."""
from contextlib import asynccontextmanager

import aiohttp
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from appointment_bot.api.booking import router as booking_router
from appointment_bot.api.chat import router as chat_router
from appointment_bot.api.dependencies import limiter
from appointment_bot.api.health import router as health_router
from appointment_bot.api.metrics import router as metrics_router
from appointment_bot.config.constants import APITimeouts
from appointment_bot.core.state_manager_factory import StateManagerFactory
from appointment_bot.utils.http_client import close_fallback_session
from appointment_bot.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: shared HTTP session and session store.

    Usage in handlers:
        session = request.app.state.http_session
        async with session.get(url) as response:
            ...
    """
    logger.info("Starting appointment assistant...")

    connector = aiohttp.TCPConnector(
        limit=100,               # Total connection pool size
        limit_per_host=20,       # Max connections per host
        ttl_dns_cache=300,       # 5 minute DNS cache
        keepalive_timeout=30,
    )
    app.state.http_session = aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=APITimeouts.HTTP_TOTAL_TIMEOUT_SEC)
    )
    logger.info("Shared HTTP session with connection pooling created")

    state_manager = await StateManagerFactory.create_state_manager()
    logger.info(f"Session store ready ({state_manager.backend})")
    logger.info("Application started successfully")

    yield

    logger.info("Initiating graceful shutdown...")

    await app.state.http_session.close()
    logger.info("Shared HTTP session closed")
    await close_fallback_session()

    await StateManagerFactory.close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Appointment Assistant",
        description="Chat assistant for booking doctor appointments and general medical questions",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(chat_router)
    app.include_router(booking_router)
    app.include_router(health_router)
    app.include_router(metrics_router)
    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    logger.info(f"Starting server on port {port}")

    uvicorn.run(
        "appointment_bot.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
