"""Chat endpoint: one conversation turn per request."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from appointment_bot.api.dependencies import (
    BadRequest,
    get_conversation_engine,
    limiter,
    read_json_object,
    resolve_session_id,
)
from appointment_bot.config.constants import RateLimitConfig, SessionConfig
from appointment_bot.config.prompts import ERROR_PROMPTS
from appointment_bot.config.settings import Settings, get_settings
from appointment_bot.core.commands import from_action, parse_message
from appointment_bot.core.models import ChatRequest
from appointment_bot.core.state_machine import ConversationEngine
from appointment_bot.core.state_manager_base import StateManagerBase
from appointment_bot.core.state_manager_factory import get_state_manager
from appointment_bot.utils.logger import get_logger
from appointment_bot.utils.structured_logging import log_chat_turn, log_error

logger = get_logger(__name__)

router = APIRouter()


def _with_session(response: JSONResponse, session_id: str, settings: Settings) -> JSONResponse:
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    response.headers[SessionConfig.SESSION_HEADER] = session_id
    return response


@router.post("/chat")
@limiter.limit(f"{RateLimitConfig.CHAT_PER_MINUTE}/minute")
async def chat(
    request: Request,
    engine: ConversationEngine = Depends(get_conversation_engine),
    state_manager: StateManagerBase = Depends(get_state_manager),
    settings: Settings = Depends(get_settings),
):
    """Process a message or a structured action and return the reply envelope.

    Body: ``{"message": "..."}`` or ``{"action": {"type": ..., ...}}``.
    """
    try:
        payload = ChatRequest.model_validate(await read_json_object(request))
    except BadRequest as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {e.error_count()} field error(s)"})

    if payload.action is not None:
        command = from_action(payload.action)
    elif payload.message:
        command = parse_message(payload.message)
    else:
        return JSONResponse(status_code=400, content={"error": ERROR_PROMPTS["no_message"]})

    session_id = resolve_session_id(request, settings.session_cookie_name)

    try:
        async with state_manager.session_lock(session_id):
            state = await state_manager.get_or_create_state(session_id)
            from_stage = state.stage
            known_names = {state.user_name}
            envelope = await engine.handle_message(state, command)
            known_names.add(state.user_name)
            known_names.discard(None)
            await state_manager.save_state(state)
    except Exception as e:
        log_error(logger, e, "Chat request failed", session_id=session_id)
        return _with_session(
            JSONResponse(status_code=500, content={"error": ERROR_PROMPTS["system_error"]}),
            session_id,
            settings,
        )

    log_chat_turn(
        logger,
        session_id,
        command.text,
        from_stage,
        state.stage,
        known_names=known_names,
        command=command.kind.value,
    )

    content = envelope.model_dump(mode="json", by_alias=True, exclude_none=True)
    return _with_session(JSONResponse(content=content), session_id, settings)
