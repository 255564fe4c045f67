"""Voice channel session state."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from voicerelay.core.events import PipelineEvent, PipelineStatus
from voicerelay.core.history import ConversationHistory
from voicerelay.exceptions import InvalidInputError
from voicerelay.logging_config import get_logger

logger: Any = get_logger(__name__)

CONTROL_STATUSES = {
    "start": PipelineStatus.LISTENING,
    "stop": PipelineStatus.STOPPED,
    "mute": PipelineStatus.MUTED,
    "unmute": PipelineStatus.UNMUTED,
}


@dataclass
class VoiceSession:
    """State of one connected voice channel.

    Created when the connection is accepted, discarded at disconnect.
    """

    user_id: str
    history: ConversationHistory
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: PipelineStatus = PipelineStatus.CONNECTED
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Serialises pipeline runs so their events never interleave on the channel
    run_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    total_runs: int = field(default=0, init=False)

    @property
    def is_muted(self) -> bool:
        return self.status == PipelineStatus.MUTED

    def apply_control(self, command: Any) -> PipelineEvent:
        """Update the session status from a control command.

        Never touches the history or the pipeline.

        Raises:
            InvalidInputError: Unknown command.
        """
        if not isinstance(command, str) or command not in CONTROL_STATUSES:
            raise InvalidInputError(f"Unknown control command: {command}")

        self.status = CONTROL_STATUSES[command]
        logger.debug(f"Session {self.session_id} status: {self.status.value}")
        return PipelineEvent.status(self.status)
