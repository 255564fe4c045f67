"""Deepgram STT service implementation using the prerecorded REST API."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from voicerelay.config import Settings, get_settings
from voicerelay.logging_config import get_logger, preview_text
from voicerelay.services.stt.audio import clean_transcript, decode_audio_payload
from voicerelay.services.stt.exceptions import TranscriptionProviderError
from voicerelay.services.stt.protocol import Transcription

if TYPE_CHECKING:
    from deepgram import DeepgramClient

logger: Any = get_logger(__name__)

DEEPGRAM_MODEL = "nova-2"

# Browsers record with MediaRecorder, which defaults to webm/opus
DEFAULT_MIMETYPE = "audio/webm"


class DeepgramService:
    """Deepgram STT service for complete utterances.

    Each call uploads one recorded utterance and waits for the final
    transcript. Payload validation happens before the network call, so
    empty or truncated recordings never reach the provider.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.deepgram_model or DEEPGRAM_MODEL
        self._client: DeepgramClient | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            from deepgram import DeepgramClient

            api_key = self._settings.deepgram_api_key
            if api_key is None or not api_key.get_secret_value():
                raise TranscriptionProviderError("Deepgram API key is not configured")

            self._client = DeepgramClient(api_key=api_key.get_secret_value())
        return self._client

    async def transcribe(
        self,
        audio: bytes | str,
        *,
        mimetype: str | None = None,
    ) -> Transcription:
        """Transcribe a complete audio payload with Deepgram.

        Args:
            audio: Raw audio bytes or base64 string
            mimetype: Audio MIME type (defaults to audio/webm)

        Returns:
            Transcription with trimmed text and provider confidence
        """
        audio_data = decode_audio_payload(audio, min_bytes=self._settings.min_audio_bytes)

        transcript, confidence = await self._request_transcript(
            audio_data, mimetype or DEFAULT_MIMETYPE
        )

        text = clean_transcript(transcript)
        logger.info(f"Transcribed: {preview_text(text)}")
        return Transcription(text=text, confidence=confidence)

    async def _request_transcript(
        self,
        audio_data: bytes,
        mimetype: str,
    ) -> tuple[str, float | None]:
        """Send audio to Deepgram and extract the first alternative."""
        from deepgram import PrerecordedOptions

        options = PrerecordedOptions(
            model=self._model,
            language=self._settings.stt_language,
            smart_format=True,
            punctuate=True,
        )

        start_time = time.perf_counter()
        try:
            response = await asyncio.to_thread(
                self.client.listen.rest.v("1").transcribe_file,
                {"buffer": audio_data, "mimetype": mimetype},
                options,
            )
        except TranscriptionProviderError:
            raise
        except Exception as e:
            logger.error(f"Deepgram transcription error: {e}")
            raise TranscriptionProviderError(f"Deepgram transcription failed: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Deepgram latency: {latency_ms:.1f}ms ({len(audio_data)} bytes)")

        results = getattr(response, "results", None)
        channels = results.channels if results else []
        if not channels or not channels[0].alternatives:
            return "", None

        alternative = channels[0].alternatives[0]
        confidence = getattr(alternative, "confidence", None)
        return alternative.transcript or "", confidence

    async def close(self) -> None:
        """Close the Deepgram client."""
        self._client = None

    async def health_check(self) -> bool:
        """Check if Deepgram client can be created."""
        try:
            _ = self.client
            return True
        except Exception as e:
            logger.error(f"Deepgram health check failed: {e}")
            return False
