"""LLM service protocol and data types."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single message in conversation history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


class LLMService(Protocol):
    """Protocol for response generator implementations."""

    async def generate(
        self,
        user_text: str,
        history: Sequence[Message],
    ) -> str:
        """Generate an assistant reply.

        Args:
            user_text: Current user utterance
            history: Prior messages, oldest first, not including user_text

        Returns:
            Raw assistant text (trimmed and validated by the caller)

        Raises:
            GenerationProviderError: Provider call failed
            EmptyResponseError: Provider returned no text
        """
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...

    async def close(self) -> None:
        """Release client resources."""
        ...
