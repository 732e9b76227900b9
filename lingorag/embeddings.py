"""OpenAI-backed embedding provider for knowledge base chunks and queries."""

from collections.abc import Sequence
from typing import Any

import numpy as np
from openai import OpenAI

from .config import config
from .interfaces import EmbeddingProvider

logger = config.get_logger(__name__)


class EmbeddingService(EmbeddingProvider):
    """Embeds text with the OpenAI embeddings endpoint.

    Every vector returned by one service has the same dimension; the first
    response fixes it and any later mismatch is an error, since a chunk index
    cannot mix dimensions.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        batch_size: int = 100,
    ) -> None:
        """Create the OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to OPENAI_API_KEY.
            model: Embedding model name. Defaults to config.EMBEDDING_MODEL.
            batch_size: Texts per embeddings request.

        Raises:
            ValueError: If ``batch_size`` is not positive.
        """
        if batch_size <= 0:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        self.client = OpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=config.get_api_headers() or None,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.batch_size = batch_size
        self.dimension: int | None = None

    def encode(self, text: str) -> np.ndarray:
        """Embed a single query or chunk.

        Returns:
            A float32 vector.

        Raises:
            ValueError: If the text is blank or the vector has the wrong dimension.
        """
        self._check_texts([text])
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception:
            logger.exception("Error generating embedding")
            raise
        return self._to_vector(response.data[0].embedding)

    def encode_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Embed texts in ``batch_size`` requests, keeping input order.

        Returns:
            One float32 vector per text.

        Raises:
            ValueError: If a text is blank or a response does not match its batch.
        """
        if not texts:
            return []
        self._check_texts(texts)

        embeddings: list[np.ndarray] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except Exception:
                logger.exception("Error generating batch embeddings")
                raise
            if len(response.data) != len(batch):
                msg = (
                    f"Embeddings response has {len(response.data)} vectors "
                    f"for {len(batch)} texts"
                )
                raise ValueError(msg)
            ordered = sorted(response.data, key=lambda item: item.index)
            embeddings.extend(self._to_vector(item.embedding) for item in ordered)
            logger.debug(
                "Embedded texts %d-%d of %d", start + 1, start + len(batch), len(texts)
            )

        logger.info("Generated %d embeddings with %s", len(embeddings), self.model)
        return embeddings

    @staticmethod
    def _check_texts(texts: Sequence[str]) -> None:
        for position, text in enumerate(texts):
            if not text.strip():
                msg = f"Cannot embed blank text at position {position}"
                raise ValueError(msg)

    def _to_vector(self, values: Sequence[Any]) -> np.ndarray:
        vector = np.asarray(values, dtype=np.float32)
        if self.dimension is None:
            self.dimension = int(vector.shape[0])
        elif vector.shape[0] != self.dimension:
            msg = (
                f"Embedding dimension {vector.shape[0]} does not match "
                f"earlier dimension {self.dimension}"
            )
            raise ValueError(msg)
        return vector
