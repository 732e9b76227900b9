"""Abstract collaborators consumed by the retrieval and orchestration core.

Concrete implementations live alongside (``EmbeddingService``, the vector
stores, ``OpenAIGenerator``, ``OpenAITranslator``, ``InMemoryHistoryStore``);
tests substitute fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np

    from .models import (
        ConversationMessage,
        Document,
        DocumentChunk,
        GenerationChunk,
        Language,
        ModelInitResult,
    )

ProgressCallback = Callable[[str, int], None]
"""Called with a stage name and a 0-100 percentage."""


class EmbeddingProvider(ABC):
    """Maps text to a fixed-dimension vector."""

    @abstractmethod
    def encode(self, text: str) -> np.ndarray:
        """Embed a single text."""
        ...

    def encode_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Embed several texts, preserving order.

        Default implementation calls ``encode`` once per text.
        """
        return [self.encode(text) for text in texts]


class ChunkIndex(ABC):
    """Stores chunk embeddings and answers top-K similarity queries."""

    @abstractmethod
    def query(
        self, vector: np.ndarray, top_n: int
    ) -> list[tuple[float, DocumentChunk]]:
        """Return up to ``top_n`` chunks ordered by descending similarity."""
        ...

    @abstractmethod
    def insert(self, chunk: DocumentChunk) -> int:
        """Persist a chunk with its embedding and return its id."""
        ...

    @abstractmethod
    def delete_by_document(self, document_id: int) -> int:
        """Delete every chunk owned by a document and return how many were removed."""
        ...


class DocumentStore(ABC):
    """Stores knowledge base documents."""

    @abstractmethod
    def add(self, document: Document) -> int: ...

    @abstractmethod
    def find_by_filename(self, filename: str) -> int | None: ...

    @abstractmethod
    def delete(self, document_id: int) -> None: ...

    @abstractmethod
    def count(self) -> int: ...


class Generator(ABC):
    """A streaming text generator with a fallible, multi-backend init."""

    @abstractmethod
    async def initialize(
        self, progress: ProgressCallback | None = None
    ) -> ModelInitResult:
        """Bring the model up; never raises, failures are reported in the result."""
        ...

    @abstractmethod
    def stream_generate(self, prompt: str) -> AsyncIterator[GenerationChunk]:
        """Yield partial text deltas; the last chunk has ``is_final=True``."""
        ...


class Translator(ABC):
    """Best-effort translation between English and the other supported languages."""

    @abstractmethod
    async def initialize(self) -> bool: ...

    @abstractmethod
    async def translate_to_english(self, text: str, language: Language) -> str: ...

    @abstractmethod
    async def translate_from_english(self, text: str, language: Language) -> str: ...


class HistoryStore(ABC):
    """Keeps per-language conversation histories."""

    @abstractmethod
    def save(self, language: Language, messages: list[ConversationMessage]) -> None: ...

    @abstractmethod
    def load(self, language: Language) -> list[ConversationMessage]: ...

    @abstractmethod
    def clear(self) -> None: ...

    def save_last_language(self, language: Language) -> None:  # noqa: B027
        """Remember the last selected language; no-op by default."""

    def load_last_language(self) -> Language | None:
        """Return the last selected language, if any was saved."""
        return None
