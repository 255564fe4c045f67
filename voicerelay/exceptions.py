"""Base exceptions shared by the voice relay services."""


class VoiceRelayError(Exception):
    """Base exception for every error surfaced to a caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(VoiceRelayError):
    """Raised for malformed, missing or undersized payloads."""

    pass
