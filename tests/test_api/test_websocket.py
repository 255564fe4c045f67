"""Tests for the voice channel WebSocket endpoint."""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, Mock

import pytest
from conftest import SAMPLE_AUDIO, make_token
from fastapi import WebSocketDisconnect
from starlette.websockets import WebSocketState

from voicerelay.api.websocket.voice_stream import (
    VoiceSessionRegistry,
    WebSocketEventSender,
    frame_event,
    parse_frame,
)
from voicerelay.core.events import PipelineEvent, PipelineStatus
from voicerelay.core.history import HistoryRegistry
from voicerelay.exceptions import InvalidInputError

AUDIO_B64 = base64.b64encode(SAMPLE_AUDIO).decode("ascii")

RUN_SEQUENCE = [
    ("voice:status", "processing"),
    ("voice:text", "transcription"),
    ("voice:status", "thinking"),
    ("voice:text", "response"),
    ("voice:status", "complete"),
]


def voice_url(sub: str = "user-1") -> str:
    return f"/ws/voice?token={make_token(sub)}"


def receive_run(websocket, count: int = len(RUN_SEQUENCE)) -> list[dict]:
    return [websocket.receive_json() for _ in range(count)]


def describe(message: dict) -> tuple[str, str]:
    """(event, status-or-type) pair of a received message."""
    return message["event"], message.get("status") or message.get("type")


class TestWebSocketConnection:
    """Tests for handshake and authentication."""

    def test_rejects_missing_token(self, test_client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect("/ws/voice"):
                pass

        assert exc_info.value.code == 1008

    def test_rejects_invalid_token(self, test_client) -> None:
        bad_token = make_token(secret="some-other-secret-that-is-long-enough")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect(f"/ws/voice?token={bad_token}"):
                pass

        assert exc_info.value.code == 1008

    def test_rejects_expired_token(self, test_client) -> None:
        expired = make_token(expires_in=-60)
        with pytest.raises(WebSocketDisconnect):
            with test_client.websocket_connect(f"/ws/voice?token={expired}"):
                pass

    def test_connected_event(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            message = websocket.receive_json()

        assert message["event"] == "voice:connected"
        assert message["status"] == "connected"
        assert message["message"] == "Voice service ready"
        assert isinstance(message["timestamp"], int)

    def test_bearer_header_accepted(self, test_client) -> None:
        headers = {"Authorization": f"Bearer {make_token()}"}
        with test_client.websocket_connect("/ws/voice", headers=headers) as websocket:
            assert websocket.receive_json()["event"] == "voice:connected"


class TestWebSocketAudio:
    """Tests for audio messages."""

    def test_audio_run_event_order(self, test_client, fake_stt, fake_llm) -> None:
        fake_stt.text = "What's 4 + 5?"
        fake_llm.reply = "The answer is 9."

        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:audio", "data": AUDIO_B64, "format": "webm"})
            messages = receive_run(websocket)

        assert [describe(m) for m in messages] == RUN_SEQUENCE
        assert messages[1]["text"] == "What's 4 + 5?"
        assert "9" in messages[3]["text"]
        assert fake_stt.calls[0][1] == "audio/webm"

    def test_binary_frame_is_audio(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_bytes(SAMPLE_AUDIO)
            messages = receive_run(websocket)

        assert [describe(m) for m in messages] == RUN_SEQUENCE

    def test_missing_audio_data(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:audio"})
            message = websocket.receive_json()

        assert message["event"] == "voice:error"
        assert message["error"] == "No audio data provided"

    def test_short_audio_reports_error(self, test_client, fake_llm) -> None:
        short = base64.b64encode(b"\x00" * 50).decode("ascii")
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:audio", "data": short})
            processing = websocket.receive_json()
            error = websocket.receive_json()

        assert describe(processing) == ("voice:status", "processing")
        assert error["event"] == "voice:error"
        assert "Audio too short" in error["error"]
        assert fake_llm.calls == []

    def test_history_carries_across_runs(self, test_client, fake_llm) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:text", "data": "first"})
            receive_run(websocket, 3)
            websocket.send_json({"event": "voice:text", "data": "second"})
            receive_run(websocket, 3)

        assert len(fake_llm.calls[0][1]) == 0
        assert [m.content for m in fake_llm.calls[1][1]] == ["first", "Happy to help!"]

    def test_connections_have_separate_histories(self, test_client, fake_llm) -> None:
        with test_client.websocket_connect(voice_url("alice")) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:text", "data": "I'm Alice"})
            receive_run(websocket, 3)

        with test_client.websocket_connect(voice_url("bob")) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:text", "data": "Who am I?"})
            receive_run(websocket, 3)

        assert fake_llm.calls[1][1] == ()


class TestWebSocketText:
    """Tests for text messages."""

    def test_text_run(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:text", "data": "hello"})
            messages = receive_run(websocket, 3)

        assert [describe(m) for m in messages] == [
            ("voice:status", "processing"),
            ("voice:text", "response"),
            ("voice:status", "complete"),
        ]

    def test_empty_text(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:text", "data": ""})
            message = websocket.receive_json()

        assert message == {
            "event": "voice:error",
            "error": "Invalid text data",
            "timestamp": message["timestamp"],
        }


class TestWebSocketControl:
    """Tests for control messages and malformed frames."""

    def test_mute_does_not_touch_pipeline(self, test_client, fake_stt, fake_llm) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:control", "data": "mute"})
            message = websocket.receive_json()

        assert describe(message) == ("voice:status", "muted")
        assert fake_stt.calls == []
        assert fake_llm.calls == []

    def test_unknown_control(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:control", "data": "rewind"})
            message = websocket.receive_json()

        assert message["error"] == "Unknown control command: rewind"

    def test_invalid_json_keeps_connection_open(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_text("{not json")
            error = websocket.receive_json()
            websocket.send_json({"event": "voice:control", "data": "start"})
            status = websocket.receive_json()

        assert error["error"] == "Invalid message format"
        assert describe(status) == ("voice:status", "listening")

    def test_unknown_event(self, test_client) -> None:
        with test_client.websocket_connect(voice_url()) as websocket:
            websocket.receive_json()
            websocket.send_json({"event": "voice:rewind"})
            message = websocket.receive_json()

        assert message["error"] == "Unknown event: voice:rewind"


class TestFraming:
    """Unit tests for frame parsing and event framing."""

    def test_parse_binary(self) -> None:
        assert parse_frame({"bytes": b"abc"}) == ("voice:audio", {"data": b"abc"})

    def test_parse_json(self) -> None:
        event, payload = parse_frame({"text": '{"event": "voice:text", "data": "hi"}'})
        assert event == "voice:text"
        assert payload["data"] == "hi"

    @pytest.mark.parametrize("text", ["", "[1, 2]", '{"data": "x"}', '{"event": 5}'])
    def test_parse_rejects(self, text: str) -> None:
        with pytest.raises(InvalidInputError):
            parse_frame({"text": text})

    def test_frame_status(self) -> None:
        name, payload = frame_event(PipelineEvent.status(PipelineStatus.THINKING))
        assert name == "voice:status"
        assert payload["status"] == "thinking"
        assert payload["message"] == "Thinking..."

    def test_frame_error(self) -> None:
        name, payload = frame_event(PipelineEvent.error("No speech detected."))
        assert name == "voice:error"
        assert payload["error"] == "No speech detected."

    def test_frame_text(self) -> None:
        name, payload = frame_event(PipelineEvent.transcription("hi"))
        assert name == "voice:text"
        assert payload["type"] == "transcription"
        assert payload["text"] == "hi"


class TestWebSocketEventSender:
    """Sends after the channel closed are dropped."""

    @pytest.mark.asyncio
    async def test_send_when_connected(self) -> None:
        websocket = Mock()
        websocket.application_state = WebSocketState.CONNECTED
        websocket.send_json = AsyncMock()

        sender = WebSocketEventSender(websocket)
        assert await sender.send("voice:status", {"status": "complete"}) is True
        websocket.send_json.assert_awaited_once_with(
            {"event": "voice:status", "status": "complete"}
        )

    @pytest.mark.asyncio
    async def test_send_after_disconnect_is_noop(self) -> None:
        websocket = Mock()
        websocket.application_state = WebSocketState.DISCONNECTED
        websocket.send_json = AsyncMock()

        sender = WebSocketEventSender(websocket)
        assert await sender.send_error("late") is False
        websocket.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_after_close_is_noop(self) -> None:
        websocket = Mock()
        websocket.application_state = WebSocketState.CONNECTED
        websocket.send_json = AsyncMock()

        sender = WebSocketEventSender(websocket)
        sender.close()

        assert await sender.send_event(PipelineEvent.response("late")) is False
        websocket.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_send_marks_closed(self) -> None:
        websocket = Mock()
        websocket.application_state = WebSocketState.CONNECTED
        websocket.send_json = AsyncMock(side_effect=RuntimeError("socket gone"))

        sender = WebSocketEventSender(websocket)

        assert await sender.send_error("oops") is False
        assert sender.closed


class TestVoiceSessionRegistry:
    """Tests for session lifecycle."""

    @pytest.mark.asyncio
    async def test_open_and_close(self) -> None:
        histories = HistoryRegistry()
        registry = VoiceSessionRegistry(histories)

        session = await registry.open("user-1")
        session.history.add_user_message("hello")
        assert registry.active_count == 1
        assert histories.get(session.session_id) is session.history

        await registry.close(session.session_id)
        assert registry.active_count == 0
        assert histories.get(session.session_id) is None

    @pytest.mark.asyncio
    async def test_sessions_get_fresh_histories(self) -> None:
        registry = VoiceSessionRegistry(HistoryRegistry())

        first = await registry.open("user-1")
        second = await registry.open("user-1")

        assert first.session_id != second.session_id
        assert first.history is not second.history

    @pytest.mark.asyncio
    async def test_close_all(self) -> None:
        histories = HistoryRegistry()
        registry = VoiceSessionRegistry(histories)
        await registry.open("a")
        await registry.open("b")

        await registry.close_all()

        assert registry.active_count == 0
        assert histories.active_count == 0
