"""Deterministic fallback responder used when no LLM provider is available."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from voicerelay.logging_config import get_logger
from voicerelay.services.llm.protocol import Message

logger: Any = get_logger(__name__)

ARITHMETIC_RE = re.compile(r"(-?\d+)\s*([+\-*/])\s*(-?\d+)")

# Checked in order; first match wins
CANNED_REPLIES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bhow are you\b"), "I'm doing well! How can I help you?"),
    (
        re.compile(r"\b(what is your name|who are you)\b"),
        "I'm your AI voice assistant.",
    ),
    (re.compile(r"\b(hello|hi|hey)\b"), "Hello! How can I assist you today?"),
    (re.compile(r"\bhelp\b"), "I'm here to help! What would you like to know?"),
    (re.compile(r"\bthank"), "You're welcome! Anything else I can assist with?"),
    (re.compile(r"\b(bye|goodbye)\b"), "Goodbye! Come back anytime for assistance."),
)


def evaluate_arithmetic(text: str) -> str | None:
    """Resolve the first `a op b` integer expression in text.

    Returns None when the text holds no expression.
    """
    match = ARITHMETIC_RE.search(text)
    if not match:
        return None

    left, operator, right = int(match.group(1)), match.group(2), int(match.group(3))

    if operator == "+":
        result: int | float = left + right
    elif operator == "-":
        result = left - right
    elif operator == "*":
        result = left * right
    else:
        if right == 0:
            return "Error: Division by zero"
        quotient = left / right
        result = int(quotient) if quotient.is_integer() else round(quotient, 6)

    return str(result)


class FallbackResponder:
    """Keyword and arithmetic replies with no network dependency.

    Implements the LLMService protocol so it can stand in for a provider
    when none is configured.
    """

    async def generate(
        self,
        user_text: str,
        history: Sequence[Message] = (),
    ) -> str:
        """Answer arithmetic and small talk; acknowledge everything else."""
        return self.reply(user_text)

    def reply(self, user_text: str) -> str:
        """Synchronous form of generate()."""
        result = evaluate_arithmetic(user_text)
        if result is not None:
            return f"The answer is {result}."

        lower = user_text.lower()
        for pattern, response in CANNED_REPLIES:
            if pattern.search(lower):
                return response

        logger.debug("Fallback responder had no specific reply")
        return (
            f'I received your message: "{user_text.strip()}". '
            "The AI service is temporarily unavailable, "
            "but I'm here to help with basic queries!"
        )

    async def health_check(self) -> bool:
        """Always available."""
        return True

    async def close(self) -> None:
        """Nothing to release."""
        return None
