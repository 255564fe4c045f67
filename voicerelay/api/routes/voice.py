"""Request/response voice endpoints.

Each call is independent: the whole pipeline either succeeds or fails with
a single error payload. Speech synthesis happens on the client, so audio
responses carry an empty placeholder.
"""

from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from voicerelay.api.auth import RequireAuth
from voicerelay.api.deps import get_llm_service, get_stt_service
from voicerelay.core.history import ConversationHistory, history_registry
from voicerelay.core.pipeline import VoicePipeline, VoiceRequest
from voicerelay.exceptions import InvalidInputError, VoiceRelayError
from voicerelay.logging_config import get_logger
from voicerelay.services.llm.exceptions import EmptyResponseError, GenerationProviderError
from voicerelay.services.llm.protocol import LLMService
from voicerelay.services.stt.exceptions import EmptyTranscriptError, TranscriptionProviderError
from voicerelay.services.stt.protocol import STTService

logger: Any = get_logger(__name__)

router = APIRouter(prefix="/voice")

PLACEHOLDER_AUDIO_FORMAT = "audio/mpeg"


# =============================================================================
# Request/Response Schemas
# =============================================================================


class TextRequest(BaseModel):
    """Text submitted to the pipeline."""

    text: str


class SpeakRequest(BaseModel):
    """Text to be spoken by the client."""

    text: str
    voice: str | None = None


class VoiceCallResponse(BaseModel):
    """Result of a full voice call."""

    transcript: str
    response: str
    confidence: float | None = None
    audio: str = ""
    audio_format: str = PLACEHOLDER_AUDIO_FORMAT


class TranscribeResponse(BaseModel):
    """Result of transcription only."""

    success: bool = True
    text: str
    confidence: float | None = None


class TextResponse(BaseModel):
    """Result of a text submission."""

    response: str


class SpeakResponse(BaseModel):
    """Placeholder synthesis result."""

    text: str
    voice: str | None = None
    audio: str = ""
    synthesis: str = "client"


# =============================================================================
# Helpers
# =============================================================================


def user_history(user_id: str) -> ConversationHistory:
    """History shared by one user's request/response calls."""
    return history_registry.get_or_create(f"user:{user_id}")


def error_status(error: VoiceRelayError) -> int:
    """HTTP status for a pipeline error."""
    if isinstance(error, (InvalidInputError, EmptyTranscriptError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, EmptyResponseError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, (TranscriptionProviderError, GenerationProviderError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(error: VoiceRelayError) -> JSONResponse:
    """Single error payload for a failed call."""
    return JSONResponse({"error": error.message}, status_code=error_status(error))


async def read_upload(audio: UploadFile | None) -> tuple[bytes, str | None]:
    """Read an uploaded audio file.

    Raises:
        InvalidInputError: No file or a non-audio content type.
    """
    if audio is None:
        raise InvalidInputError("No audio file provided")

    content_type = audio.content_type
    if content_type and not content_type.startswith("audio/") and content_type != (
        "application/octet-stream"
    ):
        raise InvalidInputError("Only audio files are allowed")

    data = await audio.read()
    if not data:
        raise InvalidInputError("No audio file provided")
    return data, content_type


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/call", response_model=VoiceCallResponse)
async def voice_call(
    user: RequireAuth,
    audio: UploadFile | None = File(None),  # noqa: B008
    voice: str | None = Form(None),  # noqa: B008
    stt: STTService = Depends(get_stt_service),  # noqa: B008
    llm: LLMService = Depends(get_llm_service),  # noqa: B008
):
    """Transcribe audio and return the assistant reply."""
    try:
        data, content_type = await read_upload(audio)
        logger.info(f"Received audio: {len(data)} bytes from user {user.sub}")

        pipeline = VoicePipeline(stt, llm, user_history(user.sub))
        result = await pipeline.process_audio(
            VoiceRequest(audio=data, voice=voice, audio_format=content_type)
        )

    except VoiceRelayError as e:
        logger.warning(f"Voice call failed for user {user.sub}: {e.message}")
        return error_response(e)

    return VoiceCallResponse(
        transcript=result.transcript,
        response=result.response,
        confidence=result.confidence,
    )


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    user: RequireAuth,
    audio: UploadFile | None = File(None),  # noqa: B008
    stt: STTService = Depends(get_stt_service),  # noqa: B008
):
    """Speech-to-text only; history is not touched."""
    try:
        data, content_type = await read_upload(audio)
        transcription = await stt.transcribe(data, mimetype=content_type)
    except VoiceRelayError as e:
        logger.warning(f"Transcription failed for user {user.sub}: {e.message}")
        return error_response(e)

    return TranscribeResponse(text=transcription.text, confidence=transcription.confidence)


@router.post("/text", response_model=TextResponse)
async def submit_text(
    request: TextRequest,
    user: RequireAuth,
    llm: LLMService = Depends(get_llm_service),  # noqa: B008
    stt: STTService = Depends(get_stt_service),  # noqa: B008
):
    """Answer a text message using the caller's history."""
    pipeline = VoicePipeline(stt, llm, user_history(user.sub))
    try:
        response = await pipeline.respond(request.text)
    except VoiceRelayError as e:
        logger.warning(f"Text request failed for user {user.sub}: {e.message}")
        return error_response(e)

    return TextResponse(response=response)


@router.post("/speak", response_model=SpeakResponse)
async def speak(request: SpeakRequest, user: RequireAuth):
    """Return the text for client-side synthesis."""
    if not request.text.strip():
        return JSONResponse({"error": "No text provided"}, status_code=400)

    return SpeakResponse(text=request.text.strip(), voice=request.voice)


@router.get("/history")
async def get_history(user: RequireAuth) -> dict[str, Any]:
    """Current conversation window of the caller, oldest first."""
    history = history_registry.get(f"user:{user.sub}")
    messages = history.to_list() if history is not None else []
    return {
        "success": True,
        "history": messages,
        "count": len(messages),
    }


@router.delete("/history")
async def clear_history(user: RequireAuth) -> dict[str, Any]:
    """Clear the caller's conversation window."""
    history_registry.clear(f"user:{user.sub}")
    return {
        "success": True,
        "message": "Conversation history cleared",
    }
