"""HTTP client utilities with connection pooling support.

When running inside a FastAPI request context, the shared session from
app.state is used. For standalone usage (health checks run outside the app,
tests), a module-level session is created lazily.
"""
import aiohttp
from typing import Optional
from contextlib import asynccontextmanager

from appointment_bot.config.constants import APITimeouts
from appointment_bot.utils.logger import get_logger

logger = get_logger(__name__)

_fallback_session: Optional[aiohttp.ClientSession] = None


async def get_fallback_session() -> aiohttp.ClientSession:
    """Get or create a fallback session for standalone usage."""
    global _fallback_session
    if _fallback_session is None or _fallback_session.closed:
        connector = aiohttp.TCPConnector(
            limit=20,
            limit_per_host=10,
            ttl_dns_cache=300,
        )
        _fallback_session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=APITimeouts.DEFAULT_TIMEOUT_SEC)
        )
        logger.debug("Created fallback HTTP session")
    return _fallback_session


async def close_fallback_session():
    """Close the fallback session. Call during application shutdown."""
    global _fallback_session
    if _fallback_session and not _fallback_session.closed:
        await _fallback_session.close()
        _fallback_session = None
        logger.debug("Closed fallback HTTP session")


@asynccontextmanager
async def http_request_session(app_state=None):
    """Get an HTTP session for making requests.

    Args:
        app_state: Optional FastAPI app.state object with http_session attribute

    Example:
        async with http_request_session(request.app.state) as session:
            async with session.get(url) as response:
                data = await response.json()
    """
    if app_state is not None and getattr(app_state, "http_session", None) is not None:
        yield app_state.http_session
    else:
        session = await get_fallback_session()
        yield session
