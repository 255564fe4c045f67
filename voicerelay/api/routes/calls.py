"""Call session endpoints.

A call is started explicitly, collects exchanges while active and is
ended with its duration recorded. Audio and text sent to a call run the
voice pipeline against that call's own history.
"""

import math
from typing import Any, Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from voicerelay.api.auth import RequireAuth
from voicerelay.api.deps import get_llm_service, get_stt_service
from voicerelay.api.routes.voice import error_response, read_upload
from voicerelay.core.calls import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    Call,
    CallNotActiveError,
    CallStatus,
    CallType,
    call_store,
    history_key,
)
from voicerelay.core.history import history_registry
from voicerelay.core.pipeline import VoicePipeline, VoiceRequest
from voicerelay.exceptions import VoiceRelayError
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.services.llm.protocol import LLMService, Role
from voicerelay.services.stt.protocol import STTService

logger: Any = get_logger(__name__)

router = APIRouter(prefix="/calls")

MAX_TEXT_LENGTH = 1000


# =============================================================================
# Request/Response Schemas
# =============================================================================


class VoiceSettings(BaseModel):
    """Client-side speech settings for a call."""

    voice: str = "alloy"
    speed: float = Field(default=1.0, ge=0.5, le=2.0)


class StartCallRequest(BaseModel):
    """Options for a new call."""

    call_type: CallType = CallType.VOICE
    ai_model: str | None = None
    language: str = "en"
    voice_settings: VoiceSettings = Field(default_factory=VoiceSettings)


class AddMessageRequest(BaseModel):
    """A message recorded on a call by the client."""

    text: str = Field(min_length=1)
    type: Literal["user", "ai"] = "user"
    audio_url: str | None = None


class CallTextRequest(BaseModel):
    """Text sent to a call."""

    text: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)


# =============================================================================
# Helpers
# =============================================================================


def owned_call(user_id: str, call_id: str) -> Call:
    """Look up a call of the caller, 404 if unknown or foreign."""
    call = call_store.get(user_id, call_id)
    if call is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return call


def active_call(user_id: str, call_id: str) -> Call:
    """Look up an active call of the caller, 400 once it has ended."""
    call = owned_call(user_id, call_id)
    if not call.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=CallNotActiveError().message,
        )
    return call


def call_pipeline(call: Call, stt: STTService, llm: LLMService) -> VoicePipeline:
    return VoicePipeline(stt, llm, history_registry.get_or_create(history_key(call.call_id)))


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_call(request: StartCallRequest, user: RequireAuth) -> dict[str, Any]:
    """Start a new call."""
    call = call_store.start(
        user.sub,
        call_type=request.call_type,
        ai_model=request.ai_model,
        language=request.language,
        voice=request.voice_settings.voice,
        speed=request.voice_settings.speed,
    )
    return {
        "success": True,
        "message": "Call started successfully",
        "call_id": call.call_id,
        "status": call.status.value,
        "started_at": call.started_at.isoformat(),
    }


@router.post("/{call_id}/end")
async def end_call(call_id: str, user: RequireAuth) -> dict[str, Any]:
    """End an active call and report its duration."""
    call = active_call(user.sub, call_id)
    duration = call_store.end(call)
    history_registry.discard(history_key(call.call_id))

    return {
        "success": True,
        "message": "Call ended successfully",
        "call_id": call.call_id,
        "duration": duration,
        "total_messages": call.metadata["total_messages"],
    }


@router.post("/{call_id}/messages", status_code=status.HTTP_201_CREATED)
async def add_message(
    call_id: str, request: AddMessageRequest, user: RequireAuth
) -> dict[str, Any]:
    """Record a message on an active call."""
    call = active_call(user.sub, call_id)
    role = Role.USER if request.type == "user" else Role.ASSISTANT
    message = call.add_message(role, request.text, audio_url=request.audio_url)

    history = history_registry.get_or_create(history_key(call.call_id))
    if role == Role.USER:
        history.add_user_message(request.text)
    else:
        history.add_assistant_message(request.text)

    return {
        "success": True,
        "message": "Message added successfully",
        "message_id": message.message_id,
        "call_id": call.call_id,
    }


@router.post("/{call_id}/audio")
async def process_call_audio(
    call_id: str,
    user: RequireAuth,
    audio: UploadFile | None = File(None),  # noqa: B008
    voice: str | None = Form(None),  # noqa: B008
    stt: STTService = Depends(get_stt_service),  # noqa: B008
    llm: LLMService = Depends(get_llm_service),  # noqa: B008
):
    """Transcribe audio sent to a call and answer it."""
    call = active_call(user.sub, call_id)

    try:
        data, content_type = await read_upload(audio)
        result = await call_pipeline(call, stt, llm).process_audio(
            VoiceRequest(audio=data, voice=voice or call.voice, audio_format=content_type)
        )
    except VoiceRelayError as e:
        logger.warning(f"Call {call.call_id} audio failed: {e.message}")
        return error_response(e)

    if call.is_active:
        call.add_exchange(result.transcript, result.response)

    return {
        "success": True,
        "transcript": result.transcript,
        "response": result.response,
        "confidence": result.confidence,
        "audio": "",
    }


@router.post("/{call_id}/text")
async def process_call_text(
    call_id: str,
    request: CallTextRequest,
    user: RequireAuth,
    llm: LLMService = Depends(get_llm_service),  # noqa: B008
    stt: STTService = Depends(get_stt_service),  # noqa: B008
):
    """Answer a text message sent to a call."""
    call = active_call(user.sub, call_id)
    text = (request.text or "").strip()
    if not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Text message is required",
        )

    try:
        response = await call_pipeline(call, stt, llm).respond(text)
    except VoiceRelayError as e:
        logger.warning(f"Call {call.call_id} text failed: {e.message}")
        return error_response(e)

    if call.is_active:
        call.add_exchange(text, response)
    logger.info(f"Call {call.call_id}: {preview_text(text)} → {preview_text(response)}")

    return {"success": True, "response": response, "audio": ""}


@router.get("/{call_id}")
async def get_call(call_id: str, user: RequireAuth) -> dict[str, Any]:
    """Get one call with all its messages."""
    return {"success": True, "call": owned_call(user.sub, call_id).to_dict()}


@router.get("")
async def list_calls(
    user: RequireAuth,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status_filter: CallStatus | None = Query(None, alias="status"),  # noqa: B008
) -> dict[str, Any]:
    """Call history of the caller, newest first, without messages."""
    calls, total = call_store.list_for_user(
        user.sub, status=status_filter, page=page, limit=limit
    )
    return {
        "success": True,
        "calls": [c.to_dict(include_messages=False) for c in calls],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }
