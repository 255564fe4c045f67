"""Custom exceptions for LLM services."""

from voicerelay.exceptions import VoiceRelayError


class LLMServiceError(VoiceRelayError):
    """Base exception for LLM service errors."""

    pass


class GenerationProviderError(LLMServiceError):
    """Raised when the language-model provider call fails."""

    pass


class LLMRateLimitError(GenerationProviderError):
    """Raised when rate limit or quota is exceeded."""

    def __init__(self, message: str, retry_after: float = 60.0):
        super().__init__(message)
        self.retry_after = retry_after


class LLMConnectionError(GenerationProviderError):
    """Raised when unable to connect to LLM API."""

    pass


class LLMAuthenticationError(GenerationProviderError):
    """Raised when API key is invalid."""

    pass


class EmptyResponseError(LLMServiceError):
    """Raised when the provider returns no usable text."""

    def __init__(self, message: str = "The assistant returned an empty response.") -> None:
        super().__init__(message)
