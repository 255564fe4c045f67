"""Shared pytest fixtures for VoiceRelay tests."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Callable, Generator, Sequence

# voicerelay.main builds the application at import time
TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)

import jwt  # noqa: E402
import pytest  # noqa: E402

from voicerelay.config import Settings  # noqa: E402
from voicerelay.core.calls import CallStore  # noqa: E402
from voicerelay.core.conversations import ConversationStore  # noqa: E402
from voicerelay.core.history import HistoryRegistry  # noqa: E402
from voicerelay.services.llm.protocol import Message  # noqa: E402
from voicerelay.services.stt.audio import decode_audio_payload  # noqa: E402
from voicerelay.services.stt.protocol import Transcription  # noqa: E402

# Large enough to pass the minimum payload size check
SAMPLE_AUDIO = b"\x1aE\xdf\xa3" + b"\x01" * 2000


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "jwt_secret": TEST_JWT_SECRET,
        "deepgram_api_key": "test-deepgram-key",
        "gemini_api_key": None,
        "groq_api_key": "test-groq-key",
        "llm_provider": "fallback",
    }
    base.update(overrides)
    return Settings(**base)


def make_token(
    sub: str = "user-1",
    *,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
    **claims,
) -> str:
    """Mint an HS256 bearer token for tests."""
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": now + expires_in, **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Fake Providers
# =============================================================================


class FakeSTT:
    """STT double that validates payloads like the real client."""

    def __init__(
        self,
        text: str = "Hello there",
        confidence: float | None = 0.95,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        min_bytes: int = 1000,
    ) -> None:
        self.text = text
        self.confidence = confidence
        self.error = error
        self.delay = delay
        self.min_bytes = min_bytes
        self.calls: list[tuple[bytes, str | None]] = []

    async def transcribe(self, audio, *, mimetype=None) -> Transcription:
        data = decode_audio_payload(audio, min_bytes=self.min_bytes)
        self.calls.append((data, mimetype))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return Transcription(text=self.text, confidence=self.confidence)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class FakeLLM:
    """LLM double that records every call.

    `reply` may be a string or a callable taking the user text.
    """

    def __init__(
        self,
        reply: str | Callable[[str], str] = "Happy to help!",
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, tuple[Message, ...]]] = []

    async def generate(self, user_text: str, history: Sequence[Message]) -> str:
        self.calls.append((user_text, tuple(history)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply(user_text) if callable(self.reply) else self.reply

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


@pytest.fixture
def fake_stt() -> FakeSTT:
    return FakeSTT()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header for the default test user."""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def histories() -> HistoryRegistry:
    """Empty history registry shared by the HTTP voice and call routes."""
    return HistoryRegistry()


@pytest.fixture
def calls() -> CallStore:
    """Empty call-session store."""
    return CallStore()


@pytest.fixture(autouse=True)
def isolated_stores(monkeypatch, histories, calls) -> None:
    """Give every test empty history, conversation and call stores."""
    monkeypatch.setattr("voicerelay.api.routes.voice.history_registry", histories)
    monkeypatch.setattr("voicerelay.api.routes.calls.history_registry", histories)
    monkeypatch.setattr("voicerelay.api.routes.calls.call_store", calls)
    monkeypatch.setattr("voicerelay.api.routes.chat.conversation_store", ConversationStore())


@pytest.fixture
def test_client(settings, fake_stt, fake_llm) -> Generator:
    """FastAPI TestClient with test settings and fake providers."""
    from fastapi.testclient import TestClient

    from voicerelay.api.deps import get_llm_service, get_stt_service
    from voicerelay.config import get_settings
    from voicerelay.main import create_app

    app = create_app(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_stt_service] = lambda: fake_stt
    app.dependency_overrides[get_llm_service] = lambda: fake_llm

    with TestClient(app) as client:
        yield client
