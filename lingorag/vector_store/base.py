"""Shared document and chunk metadata handling for SQLite-backed vector stores."""

from __future__ import annotations

import datetime
import sqlite3
from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from lingorag.config import config
from lingorag.interfaces import ChunkIndex, DocumentStore
from lingorag.models import Document, DocumentChunk

if TYPE_CHECKING:
    import numpy as np

logger = config.get_logger(__name__)

CHUNK_COLUMNS = """
    c.id,
    c.document_id,
    c.chunk_index,
    c.content,
    c.source,
    c.vector_file,
    c.vector_id
"""


class BaseSQLiteStore(DocumentStore, ChunkIndex):
    """Documents and chunk metadata in SQLite; subclasses own the vectors."""

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _create_tables(self) -> None:
        """Create documents and chunks tables if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filename TEXT NOT NULL UNIQUE,
                    text TEXT NOT NULL,
                    added_at TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    document_id INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL DEFAULT 0,
                    content TEXT NOT NULL,
                    source TEXT NOT NULL,
                    vector_file TEXT,
                    vector_id INTEGER UNIQUE,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (document_id) REFERENCES documents (id)
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id)",
            )
            cursor.execute(
                (
                    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chunks_vector_id "
                    "ON chunks(vector_id)"
                ),
            )
            conn.commit()

    # DocumentStore

    def add(self, document: Document) -> int:
        """Insert a document and return its id.

        Raises:
            RuntimeError: If the document row cannot be inserted.
            sqlite3.IntegrityError: If the filename is already stored.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO documents (filename, text, added_at) VALUES (?, ?, ?)",
                (document.filename, document.text, document.added_at.isoformat()),
            )
            row_id = cursor.lastrowid
            conn.commit()

        if row_id is None:
            msg = f"Failed to insert document '{document.filename}'"
            raise RuntimeError(msg)
        document.id = int(row_id)
        logger.info("Added document %s with id %d", document.filename, document.id)
        return document.id

    def find_by_filename(self, filename: str) -> int | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id FROM documents WHERE filename = ?", (filename,)
            ).fetchone()
        return int(row[0]) if row else None

    def get_document(self, document_id: int) -> Document | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, filename, text, added_at FROM documents WHERE id = ?",
                (int(document_id),),
            ).fetchone()
        if row is None:
            return None
        return Document(
            id=int(row[0]),
            filename=row[1],
            text=row[2],
            added_at=datetime.datetime.fromisoformat(row[3]),
        )

    def delete(self, document_id: int) -> None:
        """Delete a document together with any chunks it still owns."""
        self.delete_by_document(document_id)
        with self._connect() as conn:
            conn.execute("DELETE FROM documents WHERE id = ?", (int(document_id),))
            conn.commit()
        logger.info("Deleted document %d", document_id)

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return int(row[0])

    # ChunkIndex

    def delete_by_document(self, document_id: int) -> int:
        """Remove chunk rows and their vectors for a document.

        Returns:
            Number of chunks removed.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT id, vector_file, vector_id FROM chunks WHERE document_id = ?",
                (int(document_id),),
            )
            rows = cursor.fetchall()
            if not rows:
                return 0

            self._discard_vectors(rows)
            cursor.execute(
                "DELETE FROM chunks WHERE document_id = ?", (int(document_id),)
            )
            conn.commit()

        logger.info("Deleted %d chunks of document %d", len(rows), document_id)
        return len(rows)

    def chunk_count(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
        return int(row[0])

    @abstractmethod
    def load(self) -> None:
        """Load vectors persisted by an earlier run."""

    @abstractmethod
    def _discard_vectors(self, rows: list[tuple[int, str | None, int | None]]) -> None:
        """Drop stored vectors for the given (id, vector_file, vector_id) rows."""

    # Row helpers

    @staticmethod
    def _insert_chunk_row(
        cursor: sqlite3.Cursor,
        chunk: DocumentChunk,
        *,
        vector_file: str | None,
    ) -> tuple[int, int]:
        """Persist a chunk row and return (chunk_db_id, vector_id).

        Raises:
            ValueError: If the chunk is not attached to a document.
            RuntimeError: If the chunk row cannot be inserted.
        """
        if chunk.document_id is None:
            msg = "Chunk must belong to a document before it is stored"
            raise ValueError(msg)

        cursor.execute(
            """
            INSERT INTO chunks (document_id, chunk_index, content, source, vector_file)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                int(chunk.document_id),
                int(chunk.metadata.get("chunk_index", 0)),
                chunk.content,
                chunk.source,
                vector_file,
            ),
        )
        chunk_row_id = cursor.lastrowid
        if chunk_row_id is None:
            msg = "Failed to insert chunk row"
            raise RuntimeError(msg)
        chunk_db_id = int(chunk_row_id)
        cursor.execute(
            "UPDATE chunks SET vector_id = ? WHERE id = ?", (chunk_db_id, chunk_db_id)
        )
        return chunk_db_id, chunk_db_id

    @staticmethod
    def _build_chunk_from_row(
        row: tuple,
        *,
        embedding: np.ndarray | None = None,
    ) -> DocumentChunk:
        """Create a DocumentChunk from a metadata row.

        Returns:
            DocumentChunk hydrated with metadata and optional embedding.
        """
        chunk_db_id, document_id, chunk_index, content, source, vector_file, vector_id = (
            row
        )
        return DocumentChunk(
            id=int(chunk_db_id),
            document_id=int(document_id),
            content=content,
            source=source,
            embedding=embedding,
            metadata={
                "chunk_index": chunk_index,
                "vector_file": vector_file,
                "vector_id": vector_id,
                "length": len(content),
            },
        )

    def _fetch_chunk_by_vector_id(
        self,
        cursor: sqlite3.Cursor,
        vector_id: int,
    ) -> DocumentChunk | None:
        """Fetch a chunk by embedding vector id.

        Returns:
            DocumentChunk if found; otherwise None.
        """
        cursor.execute(
            f"SELECT {CHUNK_COLUMNS} FROM chunks c WHERE c.vector_id = ?",  # noqa: S608
            (int(vector_id),),
        )
        row = cursor.fetchone()
        return self._build_chunk_from_row(row) if row else None
