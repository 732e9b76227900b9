"""Knowledge base ingestion: Load -> Split -> Embed -> Store."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .document_processing import DocumentLoader, TextChunker
from .exceptions import KnowledgeBaseError
from .models import Document

if TYPE_CHECKING:
    from .interfaces import ChunkIndex, DocumentStore, EmbeddingProvider

logger = config.get_logger(__name__)


class KnowledgeBaseIngestor:
    """Loads a knowledge base file into the document store and chunk index."""

    def __init__(
        self,
        documents: DocumentStore,
        index: ChunkIndex,
        embedder: EmbeddingProvider,
        chunker: TextChunker | None = None,
    ) -> None:
        self.documents = documents
        self.index = index
        self.embedder = embedder
        self.chunker = chunker or TextChunker(
            max_chunk_size=config.CHUNK_SIZE,
            strategy=config.CHUNKING_STRATEGY,
            target_chunk_size=config.SMART_CHUNK_TARGET_SIZE,
        )

    def ingest(self, file_path: Path) -> int:
        """Ingest a knowledge base file, replacing any earlier copy of it.

        Returns:
            The new document id.

        Raises:
            KnowledgeBaseError: If reading, chunking, embedding or storing fails.
        """
        file_path = Path(file_path)
        logger.info("Starting knowledge base ingestion for: %s", file_path)
        try:
            text = DocumentLoader.load_document(file_path)
            return self.ingest_text(text, file_path.name)
        except KnowledgeBaseError:
            raise
        except Exception as exc:
            logger.exception("Error processing knowledge base %s", file_path)
            msg = f"Failed to load {file_path.name}: {exc}"
            raise KnowledgeBaseError(msg) from exc

    def ingest_text(self, text: str, filename: str) -> int:
        """Chunk, embed and store already-loaded text under ``filename``.

        Nothing of the new copy is left in the stores when a step fails.

        Returns:
            The new document id.

        Raises:
            KnowledgeBaseError: If chunking, embedding or storing fails.
        """
        try:
            chunks = self.chunker.chunk_text(text, source=filename)
            embeddings = self.embedder.encode_batch([c.content for c in chunks])
            self._remove_existing(filename)
        except Exception as exc:
            logger.exception("Error ingesting %s", filename)
            msg = f"Failed to ingest {filename}: {exc}"
            raise KnowledgeBaseError(msg) from exc

        document_id: int | None = None
        try:
            document_id = self.documents.add(Document(text=text, filename=filename))
            for chunk, embedding in zip(chunks, embeddings, strict=True):
                chunk.document_id = document_id
                chunk.embedding = embedding
                self.index.insert(chunk)

            save = getattr(self.index, "save", None)
            if callable(save):
                save()
        except Exception as exc:
            logger.exception("Error storing %s", filename)
            if document_id is not None:
                self._discard(document_id)
            msg = f"Failed to ingest {filename}: {exc}"
            raise KnowledgeBaseError(msg) from exc

        logger.info(
            "Ingested %s as document %d with %d chunks",
            filename,
            document_id,
            len(chunks),
        )
        return document_id


    def ingest_if_needed(self, file_path: Path, *, force: bool = False) -> int | None:
        """Ingest only when the file is not stored yet, or when forced.

        Returns:
            The new document id, or None when the stored copy was kept.
        """
        file_path = Path(file_path)
        if not force and self.documents.find_by_filename(file_path.name) is not None:
            logger.info("Knowledge base %s already exists, skipping", file_path.name)
            return None
        return self.ingest(file_path)

    def _remove_existing(self, filename: str) -> None:
        existing_id = self.documents.find_by_filename(filename)
        if existing_id is None:
            return
        logger.info("Replacing existing document %s (id %d)", filename, existing_id)
        self.index.delete_by_document(existing_id)
        self.documents.delete(existing_id)

    def _discard(self, document_id: int) -> None:
        try:
            self.index.delete_by_document(document_id)
            self.documents.delete(document_id)
        except Exception:
            logger.exception("Failed to roll back partial document %d", document_id)
