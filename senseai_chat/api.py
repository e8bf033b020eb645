"""
Assistant chat endpoints.

``POST /api/chat/assistant`` runs one turn. An ``Accept`` header that
mentions ``text/plain`` asks for the reply as newline-delimited JSON
frames; otherwise the reply is a single JSON document.

``GET /api/chat/assistant`` reports whether provider settings are present.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .assistant_client import assistant
from .config import Config, config
from .errors import AssistantError, ConfigurationError, MessageValidationError
from .models import CHAT_PATH, ErrorReply, HealthStatus, StreamFrame
from .stream import STREAM_MEDIA_TYPE, encode_frame
from .turn import AssistantOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

orchestrator = AssistantOrchestrator.from_config(assistant)


def get_settings() -> Config:
    return config


def get_orchestrator() -> AssistantOrchestrator:
    return orchestrator


def _error_response(error: AssistantError) -> JSONResponse:
    body = ErrorReply(error=error.message)
    return JSONResponse(body.to_wire(), status_code=error.status_code)


def _wants_stream(request: Request) -> bool:
    return "text/plain" in request.headers.get("accept", "")


async def _encode_frames(frames: AsyncIterator[StreamFrame]) -> AsyncIterator[bytes]:
    async for frame in frames:
        yield encode_frame(frame)


@router.post(CHAT_PATH)
async def chat(
    request: Request,
    settings: Config = Depends(get_settings),
    turns: AssistantOrchestrator = Depends(get_orchestrator),
):
    """
    Run one assistant turn.

    Body: ``{"message": str, "threadId": str | null}``. Configuration and
    input problems are answered with JSON errors before the provider is
    contacted, whichever response kind was asked for.
    """
    if not settings.has_api_key:
        return _error_response(ConfigurationError("OpenAI API key not configured"))
    if not settings.has_assistant_id:
        return _error_response(ConfigurationError("Assistant ID not configured"))

    try:
        body = await request.json()
    except ValueError:
        return _error_response(MessageValidationError("Invalid JSON in request body"))

    if not isinstance(body, dict):
        return _error_response(MessageValidationError("Request body must be a JSON object"))

    message = body.get("message")
    thread_id = body.get("threadId") or None
    if thread_id is not None and not isinstance(thread_id, str):
        return _error_response(MessageValidationError("threadId must be a string"))

    stream = _wants_stream(request)
    logger.info(f"Chat turn: thread={thread_id or 'new'}, stream={stream}")

    try:
        if stream:
            frames = turns.stream_turn(message, thread_id)
            return StreamingResponse(
                _encode_frames(frames),
                media_type=STREAM_MEDIA_TYPE,
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                },
            )

        reply = await turns.handle_turn(message, thread_id)
        return reply.to_wire()

    except AssistantError as e:
        logger.error(f"Chat API error: {e.message}")
        return _error_response(e)
    except Exception:
        logger.exception("Chat API error")
        return _error_response(AssistantError())


@router.get(CHAT_PATH)
async def health(settings: Config = Depends(get_settings)):
    """Report which provider settings are present. No side effects."""
    status = HealthStatus(
        has_api_key=settings.has_api_key,
        has_assistant_id=settings.has_assistant_id,
        assistant_id=settings.assistant_id or None,
    )
    return status.to_wire()
