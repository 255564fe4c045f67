"""Tests for configuration-driven provider selection."""

from __future__ import annotations

import pytest

from voicerelay.services.llm import (
    FallbackResponder,
    GeminiService,
    GroqService,
    create_llm_service,
)


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"llm_provider": "auto", "gemini_api_key": "g", "groq_api_key": "q"}, GeminiService),
        ({"llm_provider": "auto", "gemini_api_key": None, "groq_api_key": "q"}, GroqService),
        ({"llm_provider": "auto", "gemini_api_key": None, "groq_api_key": None}, FallbackResponder),
        ({"llm_provider": "groq", "gemini_api_key": "g"}, GroqService),
        ({"llm_provider": "fallback", "gemini_api_key": "g"}, FallbackResponder),
    ],
)
def test_create_llm_service(settings_factory, overrides, expected) -> None:
    settings = settings_factory(**overrides)
    assert isinstance(create_llm_service(settings), expected)


def test_empty_key_counts_as_missing(settings_factory) -> None:
    settings = settings_factory(llm_provider="auto", gemini_api_key="", groq_api_key=None)
    assert settings.resolved_llm_provider == "fallback"
