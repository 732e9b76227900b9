"""Test configuration and fixtures for LingoRAG tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- Fake generator and translator collaborators
- Vector store fixtures
- Sample data factories
- Conversation engine helpers
"""

import asyncio
import hashlib
import threading
from unittest.mock import AsyncMock, MagicMock, Mock

import numpy as np
import pytest
import pytest_asyncio

from lingorag.conversation import ConversationEngine
from lingorag.document_processing import TextChunker
from lingorag.exceptions import GenerationError
from lingorag.history import InMemoryHistoryStore
from lingorag.ingestion import KnowledgeBaseIngestor
from lingorag.initializer import SystemInitializer
from lingorag.interfaces import EmbeddingProvider, Generator, Translator
from lingorag.models import (
    Document,
    DocumentChunk,
    GenerationChunk,
    Language,
    ModelInitResult,
)
from lingorag.orchestrator import GenerationOrchestrator
from lingorag.prompts import PromptBuilder
from lingorag.retriever import Retriever
from lingorag.vector_store import FaissVectorStore, SQLiteVectorStore

KNOWLEDGE_BASE_TEXT = """1. ACCOUNT
-----
1.1 Creating an account
To create an account, open the app and tap Sign Up. Enter your email address
and choose a password of at least eight characters.
-----
1.2 Resetting your password
If you forgot your password, tap Forgot Password on the login screen. A reset
link is sent to your email and stays valid for 24 hours.
-----
2. BILLING
-----
2.1 Refunds
Refunds are available within 30 days of purchase. Contact support with your
order number to request one.
"""


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    DEFAULT_EMBEDDING_DIMENSION = 64

    SMALL_CHUNK_SIZE = 100
    DEFAULT_CHUNK_SIZE = 450

    ENGINE_TIMEOUT = 5.0


class MockEmbeddingService(EmbeddingProvider):
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    def encode(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)


class GatedEmbeddingService(MockEmbeddingService):
    """Mock embedder whose batches block until ``gate`` is set.

    Tracks how many batches were started and the most that ran at once.
    """

    def __init__(self) -> None:
        super().__init__()
        self.gate = threading.Event()
        self.started = 0
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def encode_batch(self, texts: list[str]) -> list[np.ndarray]:
        with self._lock:
            self.started += 1
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            self.gate.wait(TestConstants.ENGINE_TIMEOUT)
            return super().encode_batch(texts)
        finally:
            with self._lock:
                self._active -= 1


class FakeGenerator(Generator):
    """Scripted generator that streams fixed deltas.

    ``gate`` holds the stream before its first delta until it is set, and
    ``fail_at`` raises a ``GenerationError`` before the delta at that position.
    """

    def __init__(
        self,
        deltas: tuple[str, ...] = ("Sign", " up", " in the app."),
        *,
        init_result: ModelInitResult | None = None,
        fail_at: int | None = None,
        error_message: str = "stream broke",
        gate: asyncio.Event | None = None,
    ) -> None:
        self.deltas = deltas
        self.init_result = init_result or ModelInitResult.ok("fake")
        self.fail_at = fail_at
        self.error_message = error_message
        self.gate = gate
        self.prompts: list[str] = []
        self.init_calls = 0

    async def initialize(self, progress=None) -> ModelInitResult:
        self.init_calls += 1
        if progress is not None:
            progress("ready", 100)
        return self.init_result

    async def stream_generate(self, prompt: str):
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        for position, delta in enumerate(self.deltas):
            if position == self.fail_at:
                raise GenerationError(self.error_message)
            await asyncio.sleep(0)
            yield GenerationChunk(text=delta)
        yield GenerationChunk(text="", is_final=True)


class FakeTranslator(Translator):
    """Translator that tags text with the target language code."""

    def __init__(
        self,
        *,
        ready: bool = True,
        fail_from_english: bool = False,
        init_error: Exception | None = None,
    ) -> None:
        self.ready = ready
        self.fail_from_english = fail_from_english
        self.init_error = init_error
        self.to_english: list[str] = []
        self.from_english: list[str] = []

    async def initialize(self) -> bool:
        if self.init_error is not None:
            raise self.init_error
        return self.ready

    async def translate_to_english(self, text: str, language: Language) -> str:
        self.to_english.append(text)
        return f"[en] {text}"

    async def translate_from_english(self, text: str, language: Language) -> str:
        self.from_english.append(text)
        if self.fail_from_english:
            msg = "translation service down"
            raise RuntimeError(msg)
        return f"[{language.code}] {text}"


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def create_mock_stream(deltas: list[str | None]) -> MagicMock:
    """Create an async iterable of streamed chat completion events.

    Returns:
        Mock usable with ``async for`` yielding one event per delta.
    """
    events = [Mock(choices=[Mock(delta=Mock(content=delta))]) for delta in deltas]
    stream = MagicMock()
    stream.__aiter__.return_value = events
    return stream


def create_mock_async_client() -> Mock:
    """Create a mock AsyncOpenAI client with awaitable endpoints.

    Returns:
        Mock whose ``models.retrieve`` and ``chat.completions.create`` are AsyncMocks.
    """
    client = Mock()
    client.models.retrieve = AsyncMock(return_value=Mock())
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""

    def _create_mock_embedding(text: str) -> np.ndarray:
        return mock_embedding_service.encode(text)

    return _create_mock_embedding


@pytest.fixture
def text_chunker_factory():
    """Factory fixture that creates ``TextChunker`` instances on demand."""
    presets: dict[str, int] = {
        "small": TestConstants.SMALL_CHUNK_SIZE,
        "default": TestConstants.DEFAULT_CHUNK_SIZE,
    }

    def _create_chunker(
        name: str = "default", *, strategy: str = "structured"
    ) -> TextChunker:
        try:
            max_chunk_size = presets[name]
        except KeyError as exc:
            msg = f"Unknown text chunker preset: {name}"
            raise ValueError(msg) from exc
        return TextChunker(max_chunk_size=max_chunk_size, strategy=strategy)

    return _create_chunker


@pytest.fixture
def temp_vector_store(tmp_path) -> SQLiteVectorStore:
    """Create temporary SQLite vector store for testing."""
    return SQLiteVectorStore(tmp_path / "test_store.db", tmp_path / "vectors")


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    """Create temporary FAISS vector store for testing."""
    return FaissVectorStore(
        db_path=tmp_path / "faiss_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture(params=["sqlite", "faiss"])
def any_vector_store(request, tmp_path):
    """Each vector store backend in turn."""
    if request.param == "faiss":
        return FaissVectorStore(
            db_path=tmp_path / "store.db",
            index_path=tmp_path / "faiss" / "index.faiss",
        )
    return SQLiteVectorStore(tmp_path / "store.db", tmp_path / "vectors")


@pytest.fixture
def sample_texts():
    return [
        "Machine learning is a subset of artificial intelligence.",
        "Neural networks are computational models inspired by the brain.",
        "Deep learning uses multiple layers to learn complex patterns.",
        "Supervised learning uses labeled training data.",
        "Unsupervised learning finds patterns in unlabeled data.",
    ]


@pytest.fixture
def embedded_chunks_factory(mock_embeddings):
    """Factory that stores a document and returns embedded chunks for it."""

    def _create_chunks(store, texts: list[str], filename: str = "ml.txt"):
        document_id = store.add(Document(text="\n\n".join(texts), filename=filename))
        return [
            DocumentChunk(
                content=text,
                source=filename,
                document_id=document_id,
                embedding=mock_embeddings(text),
                metadata={"chunk_index": index, "length": len(text)},
            )
            for index, text in enumerate(texts)
        ]

    return _create_chunks


@pytest.fixture
def knowledge_base_file(tmp_path):
    path = tmp_path / "knowledge_base_eng.txt"
    path.write_text(KNOWLEDGE_BASE_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def ingestor_factory(temp_vector_store):
    """Factory for ingestors over the temporary SQLite store."""

    def _create_ingestor(embedder=None, chunker=None) -> KnowledgeBaseIngestor:
        return KnowledgeBaseIngestor(
            documents=temp_vector_store,
            index=temp_vector_store,
            embedder=embedder or MockEmbeddingService(),
            chunker=chunker or TextChunker(max_chunk_size=200),
        )

    return _create_ingestor


@pytest.fixture
def engine_factory(temp_vector_store, knowledge_base_file):
    """Factory for ConversationEngine wired to fakes over a real SQLite store."""

    def _create_engine(
        generator: FakeGenerator | None = None,
        translator: FakeTranslator | None = None,
        history_store: InMemoryHistoryStore | None = None,
        knowledge_base_path=None,
        default_language: Language = Language.ENGLISH,
        embedder: MockEmbeddingService | None = None,
    ) -> ConversationEngine:
        embedder = embedder or MockEmbeddingService()
        generator = generator or FakeGenerator()
        translator = translator or FakeTranslator()
        ingestor = KnowledgeBaseIngestor(
            documents=temp_vector_store,
            index=temp_vector_store,
            embedder=embedder,
            chunker=TextChunker(max_chunk_size=200),
        )
        initializer = SystemInitializer(
            ingestor,
            generator,
            translator,
            knowledge_base_path=knowledge_base_path or knowledge_base_file,
        )
        return ConversationEngine(
            retriever=Retriever(embedder, temp_vector_store),
            prompt_builder=PromptBuilder(),
            orchestrator=GenerationOrchestrator(generator, translator),
            initializer=initializer,
            history_store=history_store or InMemoryHistoryStore(),
            top_n=2,
            default_language=default_language,
        )

    return _create_engine


async def wait_until(engine: ConversationEngine, predicate):
    """Wait for a snapshot matching ``predicate`` with the default test timeout."""
    return await engine.wait_for(predicate, timeout=TestConstants.ENGINE_TIMEOUT)


async def wait_until_ready(engine: ConversationEngine):
    return await wait_until(engine, lambda state: state.init_phase.is_terminal)


@pytest_asyncio.fixture
async def started_engine(engine_factory):
    """Factory that starts engines and stops them after the test."""
    engines: list[ConversationEngine] = []

    async def _start(**kwargs) -> ConversationEngine:
        engine = engine_factory(**kwargs)
        engines.append(engine)
        await engine.start()
        state = await wait_until_ready(engine)
        assert state.init_phase.is_terminal
        return engine

    yield _start

    for engine in engines:
        await engine.stop()

