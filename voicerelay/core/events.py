"""Typed events emitted by the voice pipeline.

The pipeline never talks to a transport directly. It yields these events
and a channel adapter frames them for the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class EventKind(str, Enum):
    """Kind of pipeline event."""

    STATUS = "status"
    TRANSCRIPTION = "transcription"
    RESPONSE = "response"
    ERROR = "error"


class PipelineStatus(str, Enum):
    """Status values reported on the voice channel."""

    CONNECTED = "connected"
    PROCESSING = "processing"
    THINKING = "thinking"
    COMPLETE = "complete"
    LISTENING = "listening"
    STOPPED = "stopped"
    MUTED = "muted"
    UNMUTED = "unmuted"


STATUS_MESSAGES = {
    PipelineStatus.CONNECTED: "Voice service ready",
    PipelineStatus.PROCESSING: "Processing your message...",
    PipelineStatus.THINKING: "Thinking...",
    PipelineStatus.COMPLETE: "Complete",
    PipelineStatus.LISTENING: "Listening...",
    PipelineStatus.STOPPED: "Stopped",
    PipelineStatus.MUTED: "Muted",
    PipelineStatus.UNMUTED: "Unmuted",
}


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """One stage-boundary event.

    `value` holds the status name, the transcribed/generated text, or the
    error message depending on `kind`.
    """

    kind: EventKind
    value: str
    message: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def status(cls, status: PipelineStatus) -> PipelineEvent:
        return cls(EventKind.STATUS, status.value, STATUS_MESSAGES[status])

    @classmethod
    def transcription(cls, text: str) -> PipelineEvent:
        return cls(EventKind.TRANSCRIPTION, text)

    @classmethod
    def response(cls, text: str) -> PipelineEvent:
        return cls(EventKind.RESPONSE, text)

    @classmethod
    def error(cls, message: str) -> PipelineEvent:
        return cls(EventKind.ERROR, message)

    @property
    def name(self) -> str:
        """Short name such as `status:processing` or `text:response`."""
        if self.kind == EventKind.STATUS:
            return f"status:{self.value}"
        if self.kind == EventKind.ERROR:
            return "error"
        return f"text:{self.kind.value}"

    @property
    def timestamp_ms(self) -> int:
        """Epoch milliseconds, as sent to clients."""
        return int(self.timestamp.timestamp() * 1000)
