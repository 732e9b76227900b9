"""FAISS-backed chunk index with SQLite metadata."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from lingorag.config import config
from lingorag.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from lingorag.models import DocumentChunk

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Chunk index using FAISS for embeddings and SQLite for metadata."""

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
        raw_top_k_multiplier: int = 2,
    ) -> None:
        """Configure FAISS-backed vector store."""
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)

        super().__init__(db_path)

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized embedding vector.
        """
        vector = np.array(embedding, dtype="float32").reshape(1, -1)
        if np.linalg.norm(vector) == 0:
            return vector
        faiss.normalize_L2(vector)
        return vector

    def _init_index(self, dimension: int) -> faiss.IndexIDMap:
        """Initialize FAISS index if missing."""
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimension))
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)
        return self.index

    def insert(self, chunk: DocumentChunk) -> int:
        """Add a chunk and its embedding to the index and metadata store.

        Raises:
            ValueError: If the chunk has no embedding or its dimension mismatches.
        """
        if chunk.embedding is None:
            msg = f"Chunk {chunk.metadata.get('chunk_index')} has no embedding"
            raise ValueError(msg)

        vector = self._normalize_embedding(chunk.embedding)
        index = self.index
        if index is None:
            index = self._init_index(vector.shape[1])
        elif vector.shape[1] != index.d:
            msg = (
                f"Embedding dimension {vector.shape[1]} does not match "
                f"FAISS index dimension {index.d}"
            )
            raise ValueError(msg)

        with self._connect() as conn:
            cursor = conn.cursor()
            chunk_db_id, vector_id = self._insert_chunk_row(
                cursor, chunk, vector_file=None
            )
            index.add_with_ids(vector, np.asarray([vector_id], dtype="int64"))  # pyright: ignore[reportCallIssue]
            conn.commit()

        chunk.id = chunk_db_id
        chunk.metadata["vector_id"] = vector_id
        return chunk_db_id

    def query(
        self,
        vector: np.ndarray,
        top_n: int,
    ) -> list[tuple[float, DocumentChunk]]:
        """Search similar chunks using the FAISS index.

        Returns:
            Ranked list of (score, DocumentChunk) tuples.
        """
        index = self.index
        if index is None or index.ntotal == 0 or top_n <= 0:
            return []

        normalized_query = self._normalize_embedding(vector)
        raw_top_k = min(max(top_n, self.raw_top_k_multiplier * top_n), index.ntotal)

        scores, vector_ids = index.search(normalized_query, raw_top_k)  # pyright: ignore[reportCallIssue]

        results: list[tuple[float, DocumentChunk]] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for score, vector_id in zip(scores[0], vector_ids[0], strict=True):
                if int(vector_id) == -1:  # faiss returns -1 for empty results
                    continue
                chunk = self._fetch_chunk_by_vector_id(cursor, int(vector_id))
                if chunk:
                    chunk.score = float(score)
                    results.append((float(score), chunk))

        return results[:top_n]

    def _discard_vectors(self, rows: list[tuple[int, str | None, int | None]]) -> None:
        if self.index is None:
            return
        ids = np.asarray(
            [vector_id for _, _, vector_id in rows if vector_id is not None],
            dtype="int64",
        )
        if ids.size:
            removed = self.index.remove_ids(ids)
            logger.info("Removed %d vectors from FAISS index", removed)

    def save(self) -> None:
        """Persist FAISS index to disk."""
        if self.index is None:
            logger.warning("No FAISS index to save")
            return

        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(self.index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk if one was saved."""
        if not self.index_path.exists():
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            self.index = None
            return

        loaded_index = faiss.read_index(str(self.index_path))
        if not isinstance(loaded_index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
            logger.warning(
                "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                type(loaded_index).__name__,
            )
            loaded_index = faiss.IndexIDMap(loaded_index)
        self.index = loaded_index
        logger.info(
            "Loaded FAISS index from %s with %d vectors",
            self.index_path,
            loaded_index.ntotal,
        )
