"""LingoRAG - bilingual retrieval-augmented answering over a local knowledge base."""

from .conversation import ConversationEngine
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .generation import OpenAIGenerator
from .history import InMemoryHistoryStore
from .ingestion import KnowledgeBaseIngestor
from .initializer import InitReport, SystemInitializer
from .models import ConversationMessage, DocumentChunk, Language, RetrievedContext
from .orchestrator import GenerationOrchestrator
from .prompts import PromptBuilder
from .retriever import Retriever
from .state import ChatState
from .translation import OpenAITranslator
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "ChatState",
    "ConversationEngine",
    "ConversationMessage",
    "DocumentChunk",
    "DocumentLoader",
    "EmbeddingService",
    "FaissVectorStore",
    "GenerationOrchestrator",
    "InMemoryHistoryStore",
    "InitReport",
    "KnowledgeBaseIngestor",
    "Language",
    "OpenAIGenerator",
    "OpenAITranslator",
    "PromptBuilder",
    "Retriever",
    "SQLiteVectorStore",
    "SystemInitializer",
    "TextChunker",
    "get_vector_store",
]
