"""In-memory call sessions.

A call groups the exchanges a user has with the assistant between an
explicit start and end. Each call keeps its own message log; the pipeline
context for a call lives in the history registry under `call:<call_id>`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from voicerelay.exceptions import VoiceRelayError
from voicerelay.logging_config import get_logger
from voicerelay.observability.metrics import record_call_ended, record_call_started
from voicerelay.services.llm.protocol import Role

logger: Any = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class CallStatus(str, Enum):
    """Lifecycle state of a call."""

    ACTIVE = "active"
    ENDED = "ended"
    FAILED = "failed"


class CallType(str, Enum):
    VOICE = "voice"
    VIDEO = "video"


class CallNotActiveError(VoiceRelayError):
    """Raised when a finished call is modified."""

    def __init__(self, message: str = "Call is not active") -> None:
        super().__init__(message)


def history_key(call_id: str) -> str:
    """History registry key of a call."""
    return f"call:{call_id}"


@dataclass
class CallMessage:
    """One message recorded during a call."""

    role: Role
    text: str
    audio_url: str | None = None
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "role": self.role.value,
            "text": self.text,
            "audio_url": self.audio_url,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Call:
    """A call session owned by one user."""

    user_id: str
    call_type: CallType = CallType.VOICE
    language: str = "en"
    voice: str = "alloy"
    speed: float = 1.0
    ai_model: str | None = None
    call_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: CallStatus = CallStatus.ACTIVE
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    duration: int | None = None
    messages: list[CallMessage] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_active(self) -> bool:
        return self.status == CallStatus.ACTIVE

    def _require_active(self) -> None:
        if not self.is_active:
            raise CallNotActiveError()

    def add_message(self, role: Role, text: str, audio_url: str | None = None) -> CallMessage:
        """Record a message on an active call.

        Raises:
            CallNotActiveError: The call has ended.
        """
        self._require_active()
        message = CallMessage(role=role, text=text, audio_url=audio_url)
        self.messages.append(message)
        self.updated_at = message.timestamp
        return message

    def add_exchange(self, user_text: str, assistant_text: str) -> None:
        """Record a user/assistant exchange."""
        self.add_message(Role.USER, user_text)
        self.add_message(Role.ASSISTANT, assistant_text)

    def finish(self, status: CallStatus = CallStatus.ENDED) -> int:
        """Close the call and return its duration in whole seconds.

        Raises:
            CallNotActiveError: The call has already ended.
        """
        self._require_active()
        self.ended_at = datetime.now(UTC)
        self.duration = int((self.ended_at - self.started_at).total_seconds())
        self.status = status
        self.updated_at = self.ended_at
        return self.duration

    @property
    def metadata(self) -> dict[str, int]:
        """Message counters."""
        user_messages = sum(1 for m in self.messages if m.role == Role.USER)
        return {
            "total_messages": len(self.messages),
            "user_messages": user_messages,
            "ai_messages": len(self.messages) - user_messages,
        }

    def to_dict(self, include_messages: bool = True) -> dict[str, Any]:
        """Serialize for JSON responses."""
        data: dict[str, Any] = {
            "call_id": self.call_id,
            "user_id": self.user_id,
            "call_type": self.call_type.value,
            "status": self.status.value,
            "language": self.language,
            "ai_model": self.ai_model,
            "voice_settings": {"voice": self.voice, "speed": self.speed},
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration": self.duration,
            "metadata": self.metadata,
            "updated_at": self.updated_at.isoformat(),
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data


class CallStore:
    """Process-local store of call sessions, scoped per user."""

    def __init__(self) -> None:
        self._calls: dict[str, Call] = {}

    def start(self, user_id: str, **options: Any) -> Call:
        """Start a new active call."""
        call = Call(user_id=user_id, **options)
        self._calls[call.call_id] = call
        record_call_started()
        logger.info(f"Call {call.call_id} started by user {user_id}")
        return call

    def get(self, user_id: str, call_id: str) -> Call | None:
        """Get a call if it exists and belongs to user_id."""
        call = self._calls.get(call_id)
        if call is None or call.user_id != user_id:
            return None
        return call

    def end(self, call: Call, status: CallStatus = CallStatus.ENDED) -> int:
        """End an active call and return its duration in seconds."""
        duration = call.finish(status)
        record_call_ended(status.value, duration)
        logger.info(f"Call {call.call_id} {status.value} after {duration}s")
        return duration

    def list_for_user(
        self,
        user_id: str,
        *,
        status: CallStatus | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[Call], int]:
        """One page of a user's calls, newest first, and the total count."""
        owned = [
            c
            for c in self._calls.values()
            if c.user_id == user_id and (status is None or c.status == status)
        ]
        owned.sort(key=lambda c: c.started_at, reverse=True)
        offset = (max(page, 1) - 1) * limit
        return owned[offset : offset + limit], len(owned)

    @property
    def active_count(self) -> int:
        """Number of calls still active."""
        return sum(1 for c in self._calls.values() if c.is_active)


# Global store instance
call_store = CallStore()
