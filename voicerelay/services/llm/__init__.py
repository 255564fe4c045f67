"""LLM services (Gemini, Groq, offline fallback)."""

from voicerelay.config import Settings, get_settings
from voicerelay.services.llm.exceptions import (
    EmptyResponseError,
    GenerationProviderError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from voicerelay.services.llm.fallback import FallbackResponder, evaluate_arithmetic
from voicerelay.services.llm.gemini import GeminiService
from voicerelay.services.llm.groq import GroqService
from voicerelay.services.llm.prompt import build_chat_messages, build_prompt
from voicerelay.services.llm.protocol import LLMService, Message, Role


def create_llm_service(settings: Settings | None = None) -> LLMService:
    """Build the response generator selected by configuration."""
    settings = settings or get_settings()
    provider = settings.resolved_llm_provider

    if provider == "gemini":
        return GeminiService(settings=settings)
    if provider == "groq":
        return GroqService(settings=settings)
    return FallbackResponder()


__all__ = [
    # Protocol and types
    "LLMService",
    "Message",
    "Role",
    # Implementations
    "GeminiService",
    "GroqService",
    "FallbackResponder",
    "create_llm_service",
    # Utilities
    "build_prompt",
    "build_chat_messages",
    "evaluate_arithmetic",
    # Exceptions
    "LLMServiceError",
    "GenerationProviderError",
    "LLMRateLimitError",
    "LLMConnectionError",
    "LLMAuthenticationError",
    "EmptyResponseError",
]
