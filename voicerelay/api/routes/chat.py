"""Text chat endpoints backed by in-memory conversations.

Unlike the voice pipeline, chat degrades to the fallback responder when the
configured provider fails, so the user still gets an answer.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from voicerelay.api.auth import RequireAuth
from voicerelay.api.deps import get_llm_service
from voicerelay.config import Settings, get_settings
from voicerelay.core.conversations import conversation_store
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.observability.metrics import record_stage_error
from voicerelay.services.llm.exceptions import EmptyResponseError, GenerationProviderError
from voicerelay.services.llm.fallback import FallbackResponder
from voicerelay.services.llm.protocol import LLMService

logger: Any = get_logger(__name__)

router = APIRouter(prefix="/chat")

_fallback = FallbackResponder()


class ChatRequest(BaseModel):
    """Chat message from the user."""

    message: str
    conversation_id: str | None = None


class ChatResponse(BaseModel):
    """Assistant reply within a conversation."""

    success: bool = True
    response: str
    conversation_id: str


@router.post("", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    user: RequireAuth,
    llm: LLMService = Depends(get_llm_service),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> ChatResponse:
    """Answer a chat message, creating the conversation if needed."""
    message = request.message.strip()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message is required",
        )

    conversation = conversation_store.get_or_create(user.sub, request.conversation_id)
    context = conversation.recent(settings.history_max_messages)

    try:
        response = (await llm.generate(message, context) or "").strip()
        if not response:
            raise EmptyResponseError()
    except (GenerationProviderError, EmptyResponseError) as e:
        record_stage_error("generate", e)
        logger.warning(f"Chat provider failed, using fallback: {e.message}")
        response = _fallback.reply(message)

    conversation.add_exchange(message, response)
    logger.info(
        f"Chat {conversation.conversation_id}: {preview_text(message)} → "
        f"{preview_text(response)}"
    )

    return ChatResponse(response=response, conversation_id=conversation.conversation_id)


@router.get("/conversations")
async def list_conversations(user: RequireAuth) -> dict[str, Any]:
    """Conversations of the caller, most recently updated first."""
    conversations = conversation_store.list_for_user(user.sub)
    return {
        "success": True,
        "conversations": [c.to_dict() for c in conversations],
    }


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str, user: RequireAuth) -> dict[str, Any]:
    """Get one conversation with all its messages."""
    conversation = conversation_store.get(user.sub, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {"success": True, "conversation": conversation.to_dict()}


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str, user: RequireAuth) -> dict[str, Any]:
    """Delete one conversation."""
    if not conversation_store.delete(user.sub, conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {"success": True, "message": "Conversation deleted"}


@router.delete("/conversations")
async def delete_all_conversations(user: RequireAuth) -> dict[str, Any]:
    """Delete every conversation of the caller."""
    deleted = conversation_store.delete_all(user.sub)
    return {
        "success": True,
        "message": "All conversations deleted",
        "deleted_count": deleted,
    }
