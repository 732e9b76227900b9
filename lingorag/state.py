"""Immutable snapshot of the conversation system, published after every change."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .models import (
    ConversationMessage,
    ErrorNotice,
    InitPhase,
    Language,
    RetrievedContext,
)


def empty_histories() -> Mapping[Language, tuple[ConversationMessage, ...]]:
    return MappingProxyType({language: () for language in Language})


@dataclass(frozen=True)
class ChatState:
    """Everything a front end needs to render the conversation.

    ``histories`` holds one tuple per language; only the active language's
    tuple is shown. ``response`` is the answer being streamed, or the last
    completed answer until the next query starts.
    """

    init_phase: InitPhase = InitPhase.NOT_STARTED
    init_stage: str | None = None
    init_percent: int = 0
    knowledge_base_ready: bool = False
    model_ready: bool = False
    translator_ready: bool = False
    model_backend: str | None = None
    language: Language = Language.ENGLISH
    histories: Mapping[Language, tuple[ConversationMessage, ...]] = field(
        default_factory=empty_histories
    )
    question: str = ""
    response: str = ""
    is_generating: bool = False
    retrieved_contexts: tuple[RetrievedContext, ...] = ()
    error: ErrorNotice | None = None
    notice: str | None = None
    last_error: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.knowledge_base_ready and self.model_ready

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return self.histories.get(self.language, ())

    @property
    def display_messages(self) -> tuple[ConversationMessage, ...]:
        """Active history plus a transient streaming message while generating."""
        if not self.is_generating or not self.response:
            return self.messages
        streaming = ConversationMessage(
            content=self.response, is_from_user=False, is_streaming=True
        )
        return (*self.messages, streaming)

    def with_history(
        self, language: Language, messages: tuple[ConversationMessage, ...]
    ) -> Mapping[Language, tuple[ConversationMessage, ...]]:
        """Return a copy of ``histories`` with one language replaced."""
        updated = dict(self.histories)
        updated[language] = tuple(messages)
        return MappingProxyType(updated)
