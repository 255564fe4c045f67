"""Groq LLM service implementation."""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any

import groq
from groq import AsyncGroq

from voicerelay.config import Settings, get_settings
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.services.llm.exceptions import (
    GenerationProviderError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
)
from voicerelay.services.llm.prompt import build_chat_messages
from voicerelay.services.llm.protocol import Message

logger: Any = get_logger(__name__)

GROQ_MODEL = "llama-3.3-70b-versatile"


class GroqService:
    """Groq chat-completion response generator."""

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
        *,
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.groq_model or GROQ_MODEL
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            api_key = self._settings.groq_api_key
            if api_key is None or not api_key.get_secret_value():
                raise LLMAuthenticationError("Groq API key is not configured")

            self._client = AsyncGroq(
                api_key=api_key.get_secret_value(),
                timeout=30.0,
                max_retries=2,
            )
        return self._client

    async def generate(
        self,
        user_text: str,
        history: Sequence[Message],
    ) -> str:
        """Generate a reply with Groq chat completion.

        Raises:
            LLMRateLimitError: When rate limit exceeded
            LLMConnectionError: When API unreachable
            LLMAuthenticationError: When API key invalid
            GenerationProviderError: For other API errors
        """
        api_messages = build_chat_messages(self._settings.system_prompt, history, user_text)
        start_time = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                messages=api_messages,  # type: ignore[arg-type]
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )

        except groq.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise LLMRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            logger.error(f"Groq connection error: {e.__cause__}")
            raise LLMConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            logger.error("Groq authentication failed")
            raise LLMAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            logger.error(f"Groq API error: {e.status_code} - {e.message}")
            raise GenerationProviderError(f"Groq API error: {e.status_code}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Groq latency: {latency_ms:.1f}ms")

        content = response.choices[0].message.content if response.choices else None
        logger.info(f"Groq response: {preview_text(content)}")
        return content or ""

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def health_check(self) -> bool:
        """Check if Groq API is reachable."""
        try:
            response = await self.client.chat.completions.create(
                messages=[{"role": "user", "content": "hi"}],
                model=self._model,
                max_tokens=1,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning(f"Groq health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
