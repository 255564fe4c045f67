"""Bounded conversation history and its per-session registry."""

from __future__ import annotations

from collections import deque
from typing import Any

from voicerelay.logging_config import get_logger
from voicerelay.services.llm.protocol import Message, Role

logger: Any = get_logger(__name__)

DEFAULT_MAX_MESSAGES = 10


class ConversationHistory:
    """Sliding window of the most recent messages, oldest first.

    Mutations are synchronous, so under asyncio each append completes
    without interleaving with another pipeline run sharing the history.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._messages: deque[Message] = deque(maxlen=max_messages)

    @property
    def max_messages(self) -> int:
        """Window size."""
        return self._messages.maxlen or DEFAULT_MAX_MESSAGES

    def append(self, message: Message) -> None:
        """Append a message, evicting the oldest past the cap."""
        self._messages.append(message)

    def append_exchange(self, user_message: Message, assistant_message: Message) -> None:
        """Append a user/assistant pair in one step."""
        self._messages.extend((user_message, assistant_message))

    def add_user_message(self, content: str) -> Message:
        """Add a user message to history."""
        msg = Message(role=Role.USER, content=content)
        self.append(msg)
        return msg

    def add_assistant_message(self, content: str) -> Message:
        """Add an assistant message to history."""
        msg = Message(role=Role.ASSISTANT, content=content)
        self.append(msg)
        return msg

    def snapshot(self) -> tuple[Message, ...]:
        """Read-only copy of the current window."""
        return tuple(self._messages)

    def clear(self) -> None:
        """Clear conversation history."""
        self._messages.clear()

    def to_list(self) -> list[dict[str, Any]]:
        """Serialize for JSON responses."""
        return [msg.to_dict() for msg in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self.snapshot())


class HistoryRegistry:
    """Maps a session key to its own bounded history.

    Voice channel connections register under a generated session id and
    are discarded at disconnect; request/response callers share one key
    per authenticated user.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        self._max_messages = max_messages
        self._histories: dict[str, ConversationHistory] = {}

    def configure(self, max_messages: int) -> None:
        """Set the window size used for histories created from now on."""
        self._max_messages = max_messages

    def get_or_create(self, key: str) -> ConversationHistory:
        """Get existing history or create an empty one."""
        history = self._histories.get(key)
        if history is None:
            history = ConversationHistory(self._max_messages)
            self._histories[key] = history
            logger.debug(f"Created history for {key} (active: {len(self._histories)})")
        return history

    def get(self, key: str) -> ConversationHistory | None:
        """Get history if it exists."""
        return self._histories.get(key)

    def clear(self, key: str) -> None:
        """Empty a session's history; unknown keys are a no-op."""
        history = self._histories.get(key)
        if history is not None:
            history.clear()

    def discard(self, key: str) -> ConversationHistory | None:
        """Drop a session's history entirely."""
        return self._histories.pop(key, None)

    def clear_all(self) -> None:
        """Drop every history (for shutdown)."""
        self._histories.clear()

    @property
    def active_count(self) -> int:
        """Number of tracked histories."""
        return len(self._histories)


# Global registry instance
history_registry = HistoryRegistry()
