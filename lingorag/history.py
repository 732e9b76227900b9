"""Per-language conversation history storage."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config
from .interfaces import HistoryStore

if TYPE_CHECKING:
    from .models import ConversationMessage, Language

logger = config.get_logger(__name__)


class InMemoryHistoryStore(HistoryStore):
    """History store kept in process memory, one list per language."""

    def __init__(self) -> None:
        self._histories: dict[Language, list[ConversationMessage]] = {}
        self._last_language: Language | None = None

    def save(self, language: Language, messages: list[ConversationMessage]) -> None:
        self._histories[language] = list(messages)
        logger.debug("Saved %d messages for %s", len(messages), language.display_name)

    def load(self, language: Language) -> list[ConversationMessage]:
        return list(self._histories.get(language, []))

    def clear(self) -> None:
        self._histories.clear()
        logger.info("Cleared all chat history")

    def save_last_language(self, language: Language) -> None:
        self._last_language = language

    def load_last_language(self) -> Language | None:
        return self._last_language

    def total_message_count(self) -> int:
        return sum(len(messages) for messages in self._histories.values())
