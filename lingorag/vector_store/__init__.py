"""Vector store backends sharing one SQLite metadata schema."""

from lingorag.config import config

from .base import BaseSQLiteStore
from .faiss_store import FaissVectorStore
from .sqlite_store import SQLiteVectorStore

logger = config.get_logger(__name__)

BACKENDS = ("faiss", "sqlite")


def get_vector_store(backend: str | None = None) -> BaseSQLiteStore:
    """Open the configured vector store and load its saved vectors.

    Args:
        backend: "faiss" or "sqlite". Defaults to config.VECTOR_BACKEND.

    Returns:
        The store, ready for ingestion and queries.

    Raises:
        ValueError: If the backend is not supported.
    """
    backend = (backend or config.VECTOR_BACKEND).lower()
    if backend == "faiss":
        store: BaseSQLiteStore = FaissVectorStore(
            db_path=config.VECTOR_STORE_DB_PATH, index_path=config.FAISS_INDEX_PATH
        )
    elif backend == "sqlite":
        store = SQLiteVectorStore(
            db_path=config.VECTOR_STORE_DB_PATH, vectors_dir=config.VECTOR_STORE_DIR
        )
    else:
        msg = f"Unsupported vector store backend: {backend}. Use one of {BACKENDS}"
        raise ValueError(msg)

    store.load()
    logger.info(
        "Opened %s vector store at %s with %d chunks",
        backend,
        config.VECTOR_STORE_DB_PATH,
        store.chunk_count(),
    )
    return store


__all__ = [
    "BACKENDS",
    "BaseSQLiteStore",
    "FaissVectorStore",
    "SQLiteVectorStore",
    "get_vector_store",
]
