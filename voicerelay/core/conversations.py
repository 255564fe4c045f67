"""In-memory chat conversations."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from voicerelay.services.llm.protocol import Message, Role

MAX_LISTED_CONVERSATIONS = 50


def _new_conversation_id() -> str:
    return f"conv_{uuid.uuid4().hex[:16]}"


@dataclass
class Conversation:
    """A chat conversation owned by one user."""

    user_id: str
    conversation_id: str = field(default_factory=_new_conversation_id)
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def recent(self, limit: int) -> list[Message]:
        """Last `limit` messages, oldest first."""
        return self.messages[-limit:] if limit > 0 else []

    def add_exchange(self, user_text: str, assistant_text: str) -> None:
        """Record one user/assistant exchange."""
        self.messages.append(Message(role=Role.USER, content=user_text))
        self.messages.append(Message(role=Role.ASSISTANT, content=assistant_text))
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "conversation_id": self.conversation_id,
            "user_id": self.user_id,
            "messages": [msg.to_dict() for msg in self.messages],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class ConversationStore:
    """Process-local store of chat conversations, scoped per user."""

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}

    def get(self, user_id: str, conversation_id: str) -> Conversation | None:
        """Get a conversation if it exists and belongs to user_id."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    def get_or_create(self, user_id: str, conversation_id: str | None = None) -> Conversation:
        """Get the named conversation or start a new one."""
        if conversation_id:
            existing = self.get(user_id, conversation_id)
            if existing is not None:
                return existing

        conversation = Conversation(user_id=user_id)
        self._conversations[conversation.conversation_id] = conversation
        return conversation

    def list_for_user(
        self,
        user_id: str,
        limit: int = MAX_LISTED_CONVERSATIONS,
    ) -> list[Conversation]:
        """Conversations of a user, most recently updated first."""
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.updated_at, reverse=True)
        return owned[:limit]

    def delete(self, user_id: str, conversation_id: str) -> bool:
        """Delete one conversation. Returns False if not found."""
        if self.get(user_id, conversation_id) is None:
            return False
        del self._conversations[conversation_id]
        return True

    def delete_all(self, user_id: str) -> int:
        """Delete every conversation of a user. Returns the count."""
        doomed = [cid for cid, c in self._conversations.items() if c.user_id == user_id]
        for cid in doomed:
            del self._conversations[cid]
        return len(doomed)


# Global store instance
conversation_store = ConversationStore()
