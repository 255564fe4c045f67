"""Provider dependencies shared by HTTP routes and the voice channel.

Tests replace these with fakes through `app.dependency_overrides`.
"""

from functools import lru_cache

from voicerelay.config import get_settings
from voicerelay.services.llm import LLMService, create_llm_service
from voicerelay.services.stt import DeepgramService, STTService


@lru_cache
def get_stt_service() -> STTService:
    """Process-wide speech-to-text client."""
    return DeepgramService(settings=get_settings())


@lru_cache
def get_llm_service() -> LLMService:
    """Process-wide response generator chosen by configuration."""
    return create_llm_service(get_settings())


async def close_services() -> None:
    """Close the provider clients that were created, then forget them."""
    if get_stt_service.cache_info().currsize:
        await get_stt_service().close()
    if get_llm_service.cache_info().currsize:
        await get_llm_service().close()
    get_stt_service.cache_clear()
    get_llm_service.cache_clear()
