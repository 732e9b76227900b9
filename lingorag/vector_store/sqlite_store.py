"""SQLite-based chunk index with numpy file backend."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from lingorag.config import config
from lingorag.models import DocumentChunk
from lingorag.vector_store.base import BaseSQLiteStore

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Chunk index using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.
        """
        self.vectors_dir = Path(vectors_dir)
        self.vectors_dir.mkdir(exist_ok=True, parents=True)

        self.embeddings: np.ndarray | None = None
        self._row_ids: list[int] = []

        super().__init__(db_path)

    def insert(self, chunk: DocumentChunk) -> int:
        """Write the chunk's vector file and metadata row.

        Raises:
            ValueError: If the chunk has no embedding.
        """
        if chunk.embedding is None:
            msg = f"Chunk {chunk.metadata.get('chunk_index')} has no embedding"
            raise ValueError(msg)

        with self._connect() as conn:
            cursor = conn.cursor()
            chunk_db_id, vector_id = self._insert_chunk_row(
                cursor, chunk, vector_file=None
            )
            vector_filename = f"chunk{chunk_db_id:08d}.npy"
            np.save(self.vectors_dir / vector_filename, np.asarray(chunk.embedding))
            cursor.execute(
                "UPDATE chunks SET vector_file = ? WHERE id = ?",
                (vector_filename, chunk_db_id),
            )
            conn.commit()

        chunk.id = chunk_db_id
        chunk.metadata["vector_id"] = vector_id
        chunk.metadata["vector_file"] = vector_filename
        self.embeddings = None
        return chunk_db_id

    def _rebuild_embeddings_matrix(self) -> None:
        """Rebuild the embeddings matrix from individual vector files."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, vector_file FROM chunks
                WHERE vector_file IS NOT NULL
                ORDER BY id
                """
            ).fetchall()

        embeddings_list = []
        row_ids = []
        for row_id, vector_file in rows:
            vector_path = self.vectors_dir / vector_file
            if vector_path.exists():
                embeddings_list.append(np.load(vector_path))
                row_ids.append(int(row_id))
            else:
                logger.warning("Vector file not found: %s", vector_path)

        self.embeddings = np.vstack(embeddings_list) if embeddings_list else None
        self._row_ids = row_ids
        logger.info("Rebuilt embeddings matrix with %d vectors", len(row_ids))

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and document embeddings.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each document embedding.
        """
        query_norm = query_embedding / (np.linalg.norm(query_embedding) or 1.0)
        doc_norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        doc_norms[doc_norms == 0] = 1.0
        return np.dot(embeddings / doc_norms, query_norm)

    def query(
        self,
        vector: np.ndarray,
        top_n: int,
    ) -> list[tuple[float, DocumentChunk]]:
        """Search for similar chunks based on query embedding.

        Returns:
            A list of (score, DocumentChunk) tuples, most similar first.
        """
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        if self.embeddings is None or top_n <= 0:
            return []

        similarities = self.cosine_similarity(np.asarray(vector), self.embeddings)
        top_indices = np.argsort(similarities)[::-1][:top_n]

        results: list[tuple[float, DocumentChunk]] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for idx in top_indices:
                score = float(similarities[idx])
                chunk = self._fetch_chunk_by_vector_id(cursor, self._row_ids[idx])
                if chunk:
                    chunk.score = score
                    results.append((score, chunk))

        return results

    def _discard_vectors(self, rows: list[tuple[int, str | None, int | None]]) -> None:
        for _, vector_file, _ in rows:
            if vector_file:
                (self.vectors_dir / vector_file).unlink(missing_ok=True)
        self.embeddings = None

    def save(self) -> None:  # noqa: PLR6301
        """Save operation - data is already persisted in SQLite and files."""
        logger.info("Data already persisted in SQLite database and vector files")

    def load(self) -> None:
        """Load the embeddings matrix from the stored vector files."""
        self._rebuild_embeddings_matrix()
