"""WebSocket handlers for the real-time voice channel.

This module provides the voice channel endpoint:
- voice_stream_endpoint: Main WebSocket handler
- voice_sessions: Global session registry
"""

from voicerelay.api.websocket.voice_stream import (
    VoiceSessionRegistry,
    WebSocketEventSender,
    frame_event,
    parse_frame,
    voice_sessions,
    voice_stream_endpoint,
)

__all__ = [
    "voice_stream_endpoint",
    "voice_sessions",
    "VoiceSessionRegistry",
    "WebSocketEventSender",
    "frame_event",
    "parse_frame",
]
