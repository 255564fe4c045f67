"""WebSocket handler for the bidirectional voice channel.

Handles the voice channel protocol:
- Authenticates the connection once at handshake
- Receives voice:audio, voice:text and voice:control messages
- Relays pipeline events as voice:status, voice:text and voice:error
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from voicerelay.api.auth import ChannelAuthError, authenticate_websocket
from voicerelay.config import Settings
from voicerelay.core.events import EventKind, PipelineEvent, PipelineStatus
from voicerelay.core.history import HistoryRegistry, history_registry
from voicerelay.core.pipeline import VoicePipeline, VoiceRequest
from voicerelay.core.session import VoiceSession
from voicerelay.exceptions import InvalidInputError
from voicerelay.logging_config import get_logger
from voicerelay.observability.metrics import ACTIVE_VOICE_SESSIONS, CONTROL_COMMANDS
from voicerelay.services.llm.protocol import LLMService
from voicerelay.services.stt.protocol import STTService

logger: Any = get_logger(__name__)

# Inbound event names
AUDIO_EVENT = "voice:audio"
TEXT_EVENT = "voice:text"
CONTROL_EVENT = "voice:control"

# Outbound event names
CONNECTED_EVENT = "voice:connected"
STATUS_EVENT = "voice:status"
ERROR_EVENT = "voice:error"

# Runs keep going after disconnect; hold references until they finish
_pending_runs: set[asyncio.Task[None]] = set()


class VoiceSessionRegistry:
    """Registry of connected voice sessions.

    Each session owns a fresh history in the history registry, keyed by
    its session id and discarded when the connection ends.
    """

    def __init__(self, histories: HistoryRegistry) -> None:
        self._histories = histories
        self._sessions: dict[str, VoiceSession] = {}
        self._lock = asyncio.Lock()

    async def open(self, user_id: str) -> VoiceSession:
        """Create a session for an accepted connection."""
        async with self._lock:
            session_id = str(uuid.uuid4())
            session = VoiceSession(
                user_id=user_id,
                history=self._histories.get_or_create(session_id),
                session_id=session_id,
            )
            self._sessions[session.session_id] = session
            ACTIVE_VOICE_SESSIONS.set(len(self._sessions))

            logger.info(
                f"Voice session {session.session_id} opened "
                f"(active: {len(self._sessions)})"
            )
            return session

    async def close(self, session_id: str) -> VoiceSession | None:
        """Remove a session and discard its history."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            self._histories.discard(session_id)
            ACTIVE_VOICE_SESSIONS.set(len(self._sessions))
            return session

    def get(self, session_id: str) -> VoiceSession | None:
        """Get a connected session."""
        return self._sessions.get(session_id)

    async def close_all(self) -> None:
        """Close all sessions (for shutdown)."""
        async with self._lock:
            for session_id in list(self._sessions):
                self._histories.discard(session_id)
            self._sessions.clear()
            ACTIVE_VOICE_SESSIONS.set(0)

    @property
    def active_count(self) -> int:
        """Number of connected sessions."""
        return len(self._sessions)


# Global registry instance
voice_sessions = VoiceSessionRegistry(history_registry)


def frame_event(event: PipelineEvent) -> tuple[str, dict[str, Any]]:
    """Map a pipeline event to its wire event name and payload."""
    if event.kind == EventKind.STATUS:
        return STATUS_EVENT, {
            "status": event.value,
            "message": event.message,
            "timestamp": event.timestamp_ms,
        }

    if event.kind == EventKind.ERROR:
        return ERROR_EVENT, {
            "error": event.value,
            "timestamp": event.timestamp_ms,
        }

    return TEXT_EVENT, {
        "type": event.kind.value,
        "text": event.value,
        "timestamp": event.timestamp_ms,
    }


class WebSocketEventSender:
    """Sends framed events to the client.

    Once the connection is gone every send is a no-op.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Mark the channel closed; later sends are dropped."""
        self._closed = True

    async def send(self, event_name: str, payload: dict[str, Any]) -> bool:
        """Send one message. Returns False if it could not be delivered."""
        if self._closed or self._websocket.application_state != WebSocketState.CONNECTED:
            logger.debug(f"Dropping {event_name}: channel closed")
            return False

        try:
            await self._websocket.send_json({"event": event_name, **payload})
            return True
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug(f"Failed to send {event_name}: {e}")
            self._closed = True
            return False

    async def send_event(self, event: PipelineEvent) -> bool:
        """Frame and send a pipeline event."""
        event_name, payload = frame_event(event)
        return await self.send(event_name, payload)

    async def send_error(self, message: str) -> bool:
        """Send a voice:error event."""
        return await self.send_event(PipelineEvent.error(message))


def parse_frame(message: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Extract the event name and payload from a raw WebSocket message.

    Binary frames carry raw audio.

    Raises:
        InvalidInputError: Frame is not a JSON object with an event name.
    """
    raw_bytes = message.get("bytes")
    if raw_bytes is not None:
        return AUDIO_EVENT, {"data": raw_bytes}

    text = message.get("text")
    if not text:
        raise InvalidInputError("Empty message")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidInputError("Invalid message format") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
        raise InvalidInputError("Message must be a JSON object with an 'event' field")

    return payload["event"], payload


async def relay_events(
    session: VoiceSession,
    sender: WebSocketEventSender,
    events: AsyncIterator[PipelineEvent],
) -> None:
    """Forward one run's events, one run at a time per session."""
    async with session.run_lock:
        session.total_runs += 1
        try:
            async for event in events:
                await sender.send_event(event)
        except Exception:
            logger.exception(f"Relay failed for session {session.session_id}")


def _start_run(
    session: VoiceSession,
    sender: WebSocketEventSender,
    events: AsyncIterator[PipelineEvent],
) -> asyncio.Task[None]:
    task = asyncio.create_task(relay_events(session, sender, events))
    _pending_runs.add(task)
    task.add_done_callback(_pending_runs.discard)
    return task


async def handle_message(
    event_name: str,
    payload: dict[str, Any],
    *,
    session: VoiceSession,
    pipeline: VoicePipeline,
    sender: WebSocketEventSender,
) -> asyncio.Task[None] | None:
    """Dispatch one inbound message.

    Audio and text start a pipeline run in the background; control
    messages are answered immediately.
    """
    if event_name == AUDIO_EVENT:
        data = payload.get("data")
        if not data:
            await sender.send_error("No audio data provided")
            return None
        if not isinstance(data, (str, bytes, bytearray)):
            await sender.send_error("Invalid audio data type")
            return None

        request = VoiceRequest(
            audio=data,
            voice=payload.get("voice"),
            audio_format=payload.get("format"),
        )
        logger.debug(f"Audio message for session {session.session_id} ({request.correlation_id})")
        return _start_run(session, sender, pipeline.run_audio(request))

    if event_name == TEXT_EVENT:
        return _start_run(session, sender, pipeline.run_text(payload.get("data")))

    if event_name == CONTROL_EVENT:
        command = payload.get("data")
        try:
            event = session.apply_control(command)
        except InvalidInputError as e:
            logger.warning(f"Unknown control command: {command}")
            await sender.send_error(e.message)
            return None

        CONTROL_COMMANDS.labels(command=command).inc()
        await sender.send_event(event)
        return None

    await sender.send_error(f"Unknown event: {event_name}")
    return None


async def voice_stream_endpoint(
    websocket: WebSocket,
    *,
    stt: STTService,
    llm: LLMService,
    settings: Settings,
    sessions: VoiceSessionRegistry = voice_sessions,
) -> None:
    """Handle a voice channel WebSocket connection.

    Protocol:
    - Rejects the handshake (close code 1008) without a valid bearer token
    - Sends voice:connected once accepted
    - Keeps the connection open after errors
    """
    try:
        user = authenticate_websocket(websocket, settings)
    except ChannelAuthError as e:
        logger.warning(f"Voice channel rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    session = await sessions.open(user.sub)
    sender = WebSocketEventSender(websocket)
    pipeline = VoicePipeline(stt, llm, session.history)

    await sender.send(
        CONNECTED_EVENT,
        {
            "status": PipelineStatus.CONNECTED.value,
            "message": "Voice service ready",
            "timestamp": PipelineEvent.status(PipelineStatus.CONNECTED).timestamp_ms,
        },
    )

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            try:
                event_name, payload = parse_frame(message)
            except InvalidInputError as e:
                logger.warning(f"Bad frame on session {session.session_id}: {e.message}")
                await sender.send_error(e.message)
                continue

            await handle_message(
                event_name,
                payload,
                session=session,
                pipeline=pipeline,
                sender=sender,
            )

    except WebSocketDisconnect:
        logger.info(f"Voice session {session.session_id} disconnected")

    except Exception as e:
        logger.error(f"WebSocket error for session {session.session_id}: {e}")

    finally:
        sender.close()
        await sessions.close(session.session_id)
        logger.info(
            f"Voice session {session.session_id} closed after {session.total_runs} runs"
        )
