"""Google Gemini LLM service implementation."""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from google.api_core import exceptions as google_exceptions

from voicerelay.config import Settings, get_settings
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.services.llm.exceptions import (
    EmptyResponseError,
    GenerationProviderError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
)
from voicerelay.services.llm.prompt import build_prompt
from voicerelay.services.llm.protocol import Message

if TYPE_CHECKING:
    import google.generativeai as genai

logger: Any = get_logger(__name__)

GEMINI_MODEL = "gemini-2.5-flash"


class GeminiService:
    """Gemini response generator.

    Gemini is called completion-style: the system instruction, the
    role-labelled history and the new utterance are folded into one prompt.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
        *,
        max_output_tokens: int = 256,
        temperature: float = 0.7,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_name = model or self._settings.gemini_model or GEMINI_MODEL
        self._max_output_tokens = max_output_tokens
        self._temperature = temperature
        self._model: genai.GenerativeModel | None = None

    @property
    def model(self) -> genai.GenerativeModel:
        """Lazy initialization of the Gemini model handle."""
        if self._model is None:
            import google.generativeai as genai

            api_key = self._settings.gemini_api_key
            if api_key is None or not api_key.get_secret_value():
                raise LLMAuthenticationError("Gemini API key is not configured")

            genai.configure(api_key=api_key.get_secret_value())
            self._model = genai.GenerativeModel(self._model_name)
        return self._model

    async def generate(
        self,
        user_text: str,
        history: Sequence[Message],
    ) -> str:
        """Generate a reply with Gemini.

        Raises:
            LLMRateLimitError: Quota or rate limit exceeded
            LLMAuthenticationError: API key rejected
            LLMConnectionError: Service unreachable or timed out
            GenerationProviderError: Any other API error
            EmptyResponseError: Response blocked or without text
        """
        import google.generativeai as genai

        prompt = build_prompt(self._settings.system_prompt, history, user_text)
        start_time = time.perf_counter()

        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=genai.GenerationConfig(
                    max_output_tokens=self._max_output_tokens,
                    temperature=self._temperature,
                ),
            )

        except google_exceptions.ResourceExhausted as e:
            logger.warning(f"Gemini rate limit hit: {e}")
            raise LLMRateLimitError(f"Gemini quota exceeded: {e.message}") from e

        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as e:
            logger.error("Gemini authentication failed")
            raise LLMAuthenticationError(f"Gemini API key error: {e.message}") from e

        except (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded) as e:
            logger.error(f"Gemini connection error: {e}")
            raise LLMConnectionError(f"Failed to reach Gemini API: {e.message}") from e

        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Gemini API error: {e}")
            raise GenerationProviderError(f"Gemini API error: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Gemini latency: {latency_ms:.1f}ms")

        try:
            text = response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked (safety filters)
            logger.warning(f"Gemini returned no text: {e}")
            raise EmptyResponseError(
                "The response was blocked by the provider's safety filters."
            ) from e

        logger.info(f"Gemini response: {preview_text(text)}")
        return text or ""

    async def health_check(self) -> bool:
        """Check if the Gemini model handle can be created."""
        try:
            _ = self.model
            return True
        except Exception as e:
            logger.warning(f"Gemini health check failed: {e}")
            return False

    async def close(self) -> None:
        """Drop the model handle."""
        self._model = None
