"""Prompt rendering for grounded answers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import ConversationMessage

FALLBACK_ANSWER = (
    "I don't have that specific information. "
    "Please contact support for more details."
)

SYSTEM_INSTRUCTION = f"""Your task is to act as a knowledge base assistant, answering questions using only the context below.

Personality:
• Friendly and knowledgeable, like a helpful colleague
• Explain things clearly and focus on what matters most to the user

Response guidelines:
• For greetings: Warmly ask how you can help
• For questions: Provide brief (1-2 sentences) and conversational answers under 100 words
• Use everyday language; avoid jargon
• Include URLs only if referenced in the context and directly helpful

If information is unavailable:
• Respond with exactly: "{FALLBACK_ANSWER}\""""

_HORIZONTAL_WHITESPACE = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n\s*\n(\s*\n)+")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces/tabs and allow at most one blank line in a row."""
    lines = [_HORIZONTAL_WHITESPACE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


class PromptBuilder:
    """Renders instruction, recent history, retrieved context and query."""

    def __init__(self, history_turns: int | None = None) -> None:
        """Initialize the builder.

        Args:
            history_turns: Number of most recent messages rendered into the
                prompt. Defaults to config.PROMPT_HISTORY_TURNS.
        """
        self.history_turns = (
            config.PROMPT_HISTORY_TURNS if history_turns is None else history_turns
        )

    def format_history(self, history: Sequence[ConversationMessage]) -> str:
        if self.history_turns <= 0:
            return ""
        recent = list(history)[-self.history_turns :]
        return "\n\n".join(
            f"Human: {message.content}"
            if message.is_from_user
            else f"Assistant: {message.content}"
            for message in recent
        )

    def build_prompt(
        self,
        query: str,
        joined_context: str,
        history: Sequence[ConversationMessage] = (),
    ) -> str:
        """Build the full prompt.

        ``history`` must not contain the message for ``query`` itself.

        Returns:
            str: Whitespace-normalized prompt for the generator.
        """
        rag_prompt = (
            f"{SYSTEM_INSTRUCTION}\n\n"
            f"Context: {joined_context}\n"
            f"Query: {query}\n"
            "Response:"
        )

        history_text = self.format_history(history)
        if history_text:
            rag_prompt = (
                "Previous conversation:\n"
                f"{history_text}\n\n"
                "Current request:\n"
                f"{rag_prompt}"
            )

        return normalize_whitespace(rag_prompt)
