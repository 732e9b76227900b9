"""Data models for the RAG application."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class Language(Enum):
    """Conversation languages; answers are always generated in English."""

    ENGLISH = ("en", "English", "English")
    RUSSIAN = ("ru", "Русский", "Russian")

    def __init__(self, code: str, display_name: str, english_name: str) -> None:
        self.code = code
        self.display_name = display_name
        self.english_name = english_name

    @property
    def requires_translation(self) -> bool:
        return self is not Language.ENGLISH

    @classmethod
    def from_code(cls, code: str) -> Language:
        """Look up a language by its ISO code.

        Raises:
            ValueError: If the code is not supported.
        """
        normalized = code.strip().lower()
        for language in cls:
            if language.code == normalized:
                return language
        msg = f"Unsupported language code: {code}"
        raise ValueError(msg)


@dataclass
class Document:
    """A knowledge base document; superseded when the same filename is re-ingested."""

    text: str
    filename: str
    added_at: datetime.datetime = field(default_factory=_utc_now)
    id: int | None = None


@dataclass
class DocumentChunk:
    """Represents a chunk of text from a document."""

    content: str
    source: str
    document_id: int | None = None
    embedding: np.ndarray | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    score: float | None = None


@dataclass(frozen=True)
class RetrievedContext:
    """A deduplicated chunk handed to the prompt builder and shown for citation."""

    source: str
    context: str


@dataclass(frozen=True)
class ConversationMessage:
    """A single chat message; never mutated once appended."""

    content: str
    is_from_user: bool
    id: str = field(default_factory=_new_id)
    timestamp: datetime.datetime = field(default_factory=_utc_now)
    is_streaming: bool = False


class InitPhase(Enum):
    NOT_STARTED = "not_started"
    LOADING_KB = "loading_kb"
    LOADING_MODEL = "loading_model"
    LOADING_TRANSLATOR = "loading_translator"
    READY = "ready"
    KB_FAILED = "kb_failed"
    MODEL_FAILED = "model_failed"

    @property
    def is_terminal(self) -> bool:
        return self in {InitPhase.READY, InitPhase.KB_FAILED, InitPhase.MODEL_FAILED}


class ModelErrorType(Enum):
    DOWNLOAD_FAILED = "download_failed"
    PRIMARY_BACKEND_FAILED = "primary_backend_failed"
    BOTH_BACKENDS_FAILED = "both_backends_failed"
    WARMUP_FAILED = "warmup_failed"
    UNKNOWN_ERROR = "unknown_error"


@dataclass(frozen=True)
class ModelInitResult:
    """Outcome of ``Generator.initialize``."""

    success: bool
    backend: str | None = None
    error_message: str | None = None
    error_type: ModelErrorType | None = None

    @classmethod
    def ok(cls, backend: str) -> ModelInitResult:
        return cls(success=True, backend=backend)

    @classmethod
    def failure(cls, message: str, error_type: ModelErrorType) -> ModelInitResult:
        return cls(success=False, error_message=message, error_type=error_type)


@dataclass(frozen=True)
class GenerationChunk:
    """One partial emission of a streaming generator."""

    text: str
    is_final: bool = False


class ErrorAction(Enum):
    DISMISS = "dismiss"
    RETRY = "retry"
    EXIT = "exit"


class ErrorCategory(Enum):
    KNOWLEDGE_BASE = "knowledge_base"
    MODEL = "model"
    TRANSLATOR = "translator"
    GENERATION = "generation"


@dataclass(frozen=True)
class ErrorNotice:
    """A classified error for the caller to show, with the actions it offers."""

    title: str
    message: str
    category: ErrorCategory
    actions: tuple[ErrorAction, ...] = (
        ErrorAction.DISMISS,
        ErrorAction.RETRY,
        ErrorAction.EXIT,
    )
    error_type: ModelErrorType | None = None

    @property
    def is_blocking(self) -> bool:
        return self.category in {ErrorCategory.KNOWLEDGE_BASE, ErrorCategory.MODEL}
