"""Tests for Groq LLM service."""

from __future__ import annotations

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import groq
import httpx
import pytest

from voicerelay.services.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
)
from voicerelay.services.llm.groq import GroqService
from voicerelay.services.llm.protocol import Message, Role

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"


def completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def groq_service(settings_factory) -> GroqService:
    """GroqService with a mocked client."""
    service = GroqService(settings=settings_factory(system_prompt="Be brief."))
    service._client = Mock()
    service._client.chat.completions.create = AsyncMock(return_value=completion("Hello!"))
    return service


class TestGroqService:
    """Test suite for GroqService."""

    def test_default_model(self, settings_factory) -> None:
        service = GroqService(settings=settings_factory())
        assert service._model == "llama-3.3-70b-versatile"

    def test_missing_api_key(self, settings_factory) -> None:
        service = GroqService(settings=settings_factory(groq_api_key=None))
        with pytest.raises(LLMAuthenticationError):
            _ = service.client

    @pytest.mark.asyncio
    async def test_generate_sends_chat_messages(self, groq_service: GroqService) -> None:
        history = [Message(role=Role.USER, content="Hi"), Message(role=Role.ASSISTANT, content="Hey")]

        reply = await groq_service.generate("How are you?", history)

        assert reply == "Hello!"
        kwargs = groq_service._client.chat.completions.create.call_args.kwargs
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user", "assistant", "user"]
        assert kwargs["messages"][-1]["content"] == "How are you?"
        assert kwargs["model"] == "llama-3.3-70b-versatile"

    @pytest.mark.asyncio
    async def test_none_content_is_empty_string(self, groq_service: GroqService) -> None:
        groq_service._client.chat.completions.create.return_value = completion(None)
        assert await groq_service.generate("hi", []) == ""

    @pytest.mark.asyncio
    async def test_connection_error(self, groq_service: GroqService) -> None:
        groq_service._client.chat.completions.create.side_effect = groq.APIConnectionError(
            request=httpx.Request("POST", GROQ_URL)
        )

        with pytest.raises(LLMConnectionError):
            await groq_service.generate("hi", [])

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self, groq_service: GroqService) -> None:
        request = httpx.Request("POST", GROQ_URL)
        response = httpx.Response(429, headers={"retry-after": "12"}, request=request)
        groq_service._client.chat.completions.create.side_effect = groq.RateLimitError(
            "Too many requests", response=response, body=None
        )

        with pytest.raises(LLMRateLimitError) as exc_info:
            await groq_service.generate("hi", [])

        assert exc_info.value.retry_after == 12.0


def _has_groq_key() -> bool:
    """Check if Groq API key is available for integration tests."""
    return bool(os.environ.get("GROQ_API_KEY"))


@pytest.mark.skipif(not _has_groq_key(), reason="GROQ_API_KEY not set")
class TestGroqIntegration:
    """Integration tests for Groq API (env-gated)."""

    @pytest.fixture
    def service(self, settings_factory):
        settings = settings_factory(groq_api_key=os.environ["GROQ_API_KEY"])
        return GroqService(settings=settings)

    @pytest.mark.asyncio
    async def test_generate(self, service):
        reply = await service.generate("Reply with the single word: pong", [])
        assert reply.strip()
        await service.close()
