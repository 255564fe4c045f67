"""Custom exceptions for STT services."""

from voicerelay.exceptions import VoiceRelayError


class STTServiceError(VoiceRelayError):
    """Base exception for STT service errors."""

    pass


class TranscriptionProviderError(STTServiceError):
    """Raised when the speech-to-text provider call fails."""

    pass


class EmptyTranscriptError(STTServiceError):
    """Raised when no usable speech was detected."""

    def __init__(self, message: str = "No speech detected. Please try again.") -> None:
        super().__init__(message)
