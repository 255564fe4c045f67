"""Core voice pipeline components.

This module provides the core orchestration for voice conversations:
- ConversationHistory / HistoryRegistry: bounded per-session history
- VoicePipeline: Orchestrates STT → LLM → events
- VoiceSession: Per-connection channel state
- ConversationStore: In-memory chat conversations
"""

from voicerelay.core.conversations import Conversation, ConversationStore, conversation_store
from voicerelay.core.events import EventKind, PipelineEvent, PipelineStatus
from voicerelay.core.history import ConversationHistory, HistoryRegistry, history_registry
from voicerelay.core.pipeline import (
    PipelineResult,
    PipelineRun,
    PipelineState,
    VoicePipeline,
    VoiceRequest,
)
from voicerelay.core.session import VoiceSession

__all__ = [
    # History
    "ConversationHistory",
    "HistoryRegistry",
    "history_registry",
    # Pipeline
    "VoicePipeline",
    "VoiceRequest",
    "PipelineResult",
    "PipelineRun",
    "PipelineState",
    # Events
    "EventKind",
    "PipelineEvent",
    "PipelineStatus",
    # Sessions
    "VoiceSession",
    # Chat
    "Conversation",
    "ConversationStore",
    "conversation_store",
]
