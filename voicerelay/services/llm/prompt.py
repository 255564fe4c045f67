"""Prompt formatting shared by the LLM providers."""

from __future__ import annotations

from collections.abc import Sequence

from voicerelay.services.llm.protocol import Message, Role

SPEAKER_LABELS = {
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.SYSTEM: "System",
}


def format_history(history: Sequence[Message]) -> str:
    """Render history as role-labelled lines, oldest first."""
    return "\n".join(f"{SPEAKER_LABELS[msg.role]}: {msg.content}" for msg in history)


def build_prompt(
    system_prompt: str,
    history: Sequence[Message],
    user_text: str,
) -> str:
    """Build a single-string prompt for completion-style providers.

    Layout: system instruction, then prior turns, then the current
    utterance last.
    """
    sections = [system_prompt.strip()]

    if history:
        sections.append(f"Conversation history:\n{format_history(history)}")

    sections.append(f"User: {user_text}")
    sections.append("Please respond to the user's last message.\nAssistant:")

    return "\n\n".join(sections)


def build_chat_messages(
    system_prompt: str,
    history: Sequence[Message],
    user_text: str,
) -> list[dict[str, str]]:
    """Build an OpenAI-style message list for chat-completion providers."""
    api_messages = [{"role": Role.SYSTEM.value, "content": system_prompt}]

    for msg in history:
        api_messages.append({
            "role": msg.role.value,
            "content": msg.content,
        })

    api_messages.append({"role": Role.USER.value, "content": user_text})
    return api_messages
