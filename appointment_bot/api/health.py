"""Health check endpoints with dependency verification."""
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict

import aiohttp
import aiosmtplib
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from appointment_bot.config.constants import HealthCheckConfig
from appointment_bot.config.settings import Settings, get_settings
from appointment_bot.core.state_manager_base import StateManagerBase
from appointment_bot.core.state_manager_factory import get_state_manager
from appointment_bot.utils.circuit_breaker import get_circuit_status
from appointment_bot.utils.http_client import http_request_session
from appointment_bot.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_medical_qa_health(settings: Settings, app_state=None) -> Dict[str, Any]:
    """Check the Q&A provider by listing models on its OpenAI-compatible API."""
    api_key = settings.get_groq_api_key()
    if not api_key:
        return {"status": "skipped", "message": "Medical Q&A provider not configured"}

    try:
        async with http_request_session(app_state) as session:
            async with session.get(
                f"{settings.groq_base_url}/models",
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=aiohttp.ClientTimeout(total=HealthCheckConfig.DEPENDENCY_CHECK_TIMEOUT_SEC),
            ) as response:
                if response.status == 200:
                    return {"status": "healthy", "message": "Medical Q&A provider accessible"}
                return {
                    "status": "unhealthy",
                    "message": f"Medical Q&A provider returned {response.status}",
                }
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Medical Q&A health check failed: {e}")
        return {
            "status": "unhealthy",
            "message": f"Medical Q&A provider error: {str(e)}",
            "error": type(e).__name__,
        }


async def check_smtp_health(settings: Settings) -> Dict[str, Any]:
    """Check SMTP server connectivity without logging in or sending."""
    if not settings.smtp_configured:
        return {"status": "skipped", "message": "SMTP not configured"}

    smtp = aiosmtplib.SMTP(
        hostname=settings.smtp_host,
        port=settings.smtp_port,
        timeout=HealthCheckConfig.DEPENDENCY_CHECK_TIMEOUT_SEC,
    )
    try:
        await smtp.connect()
        await smtp.quit()
        return {"status": "healthy", "message": "SMTP server accessible"}
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP health check failed: {e}")
        return {
            "status": "unhealthy",
            "message": f"SMTP error: {str(e)}",
            "error": type(e).__name__,
        }


async def check_session_store_health(state_manager: StateManagerBase) -> Dict[str, Any]:
    healthy = await state_manager.health_check()
    return {
        "status": "healthy" if healthy else "unhealthy",
        "backend": state_manager.backend,
        "active_sessions": await state_manager.get_active_sessions_count(),
    }


@router.get("/health")
async def health_check():
    """Basic health check - returns 200 if service is running."""
    return {
        "status": "healthy",
        "service": "appointment-bot",
        "timestamp": _now(),
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness check - checks if service is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(state_manager: StateManagerBase = Depends(get_state_manager)):
    """Readiness check - the session store must be usable."""
    if not await state_manager.health_check():
        logger.error("Readiness check failed: session store unavailable")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "error": "Session store unavailable"},
        )
    return {"status": "ready"}


@router.get("/health/detailed")
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    state_manager: StateManagerBase = Depends(get_state_manager),
):
    """Comprehensive health check with dependency verification.

    Returns 200 when the session store is healthy and the optional
    dependencies are healthy or not configured, 503 otherwise.
    """
    logger.info("Running detailed health check")

    checks_coros = {
        "session_store": check_session_store_health(state_manager),
        "medical_qa": check_medical_qa_health(settings, request.app.state),
        "smtp": check_smtp_health(settings),
    }

    checks = {}
    results = await asyncio.gather(*checks_coros.values(), return_exceptions=True)
    for name, result in zip(checks_coros, results):
        if isinstance(result, Exception):
            checks[name] = {
                "status": "error",
                "message": str(result),
                "error": type(result).__name__,
            }
        else:
            checks[name] = result

    critical_healthy = checks["session_store"].get("status") == "healthy"
    optional_healthy = all(
        checks[dep].get("status") in ("healthy", "skipped")
        for dep in ("medical_qa", "smtp")
    )
    all_healthy = critical_healthy and optional_healthy

    circuit_breakers = get_circuit_status()

    response = {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": _now(),
        "checks": checks,
        "circuit_breakers": circuit_breakers,
        "summary": {
            "critical_healthy": critical_healthy,
            "optional_healthy": optional_healthy,
            "total_checks": len(checks),
            "healthy_count": sum(1 for c in checks.values() if c.get("status") == "healthy"),
            "unhealthy_count": sum(1 for c in checks.values() if c.get("status") == "unhealthy"),
            "skipped_count": sum(1 for c in checks.values() if c.get("status") == "skipped"),
            "circuit_breakers_open": sum(1 for cb in circuit_breakers.values() if cb.get("state") == "open"),
        },
    }

    return JSONResponse(content=response, status_code=200 if all_healthy else 503)
