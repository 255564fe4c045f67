"""STT (Speech-to-Text) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Transcription:
    """Result of transcribing one complete audio payload."""

    text: str
    confidence: float | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class STTService(Protocol):
    """Protocol for STT (Speech-to-Text) service implementations."""

    async def transcribe(
        self,
        audio: bytes | str,
        *,
        mimetype: str | None = None,
    ) -> Transcription:
        """Transcribe a complete audio payload.

        Args:
            audio: Raw audio bytes or a base64-encoded string
            mimetype: Audio MIME type hint (e.g. audio/webm)

        Returns:
            Transcription with trimmed, non-empty text

        Raises:
            InvalidInputError: Payload missing, undecodable or undersized
            TranscriptionProviderError: Provider call failed
            EmptyTranscriptError: No usable speech in the result
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
