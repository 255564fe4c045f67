"""Speech-to-Text services (Deepgram)."""

from voicerelay.services.stt.audio import (
    HALLUCINATED_PHRASES,
    MIN_AUDIO_BYTES,
    clean_transcript,
    decode_audio_payload,
    is_hallucination,
)
from voicerelay.services.stt.deepgram import DeepgramService
from voicerelay.services.stt.exceptions import (
    EmptyTranscriptError,
    STTServiceError,
    TranscriptionProviderError,
)
from voicerelay.services.stt.protocol import STTService, Transcription

__all__ = [
    # Protocol and types
    "STTService",
    "Transcription",
    # Implementation
    "DeepgramService",
    # Payload handling
    "HALLUCINATED_PHRASES",
    "MIN_AUDIO_BYTES",
    "clean_transcript",
    "decode_audio_payload",
    "is_hallucination",
    # Exceptions
    "STTServiceError",
    "TranscriptionProviderError",
    "EmptyTranscriptError",
]
