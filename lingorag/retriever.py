"""Similarity retrieval with aggressive near-duplicate filtering."""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING

from .config import config
from .models import RetrievedContext

if TYPE_CHECKING:
    from .interfaces import ChunkIndex, EmbeddingProvider

logger = config.get_logger(__name__)

CONTEXT_SEPARATOR = "\n----------\n"

_NUMBERING_PREFIX = re.compile(r"\d+\.\d+\s+")
_NON_WORD = re.compile(r"\W+")
MIN_TOKEN_LENGTH = 4


def _content_tokens(text: str) -> set[str]:
    cleaned = _NUMBERING_PREFIX.sub("", text).lower()
    return {token for token in _NON_WORD.split(cleaned) if len(token) >= MIN_TOKEN_LENGTH}


def token_jaccard(text1: str, text2: str) -> float:
    """Jaccard overlap of the longer word tokens of two texts.

    Section numbers such as ``"2.1 "`` are stripped and case is ignored.
    Returns 0.0 when neither text has any qualifying token.
    """
    words1 = _content_tokens(text1)
    words2 = _content_tokens(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def is_near_duplicate(candidate: str, seen: str, threshold: float) -> bool:
    return (
        candidate in seen
        or seen in candidate
        or token_jaccard(seen, candidate) > threshold
    )


class Retriever:
    """Embeds a query, searches the chunk index and deduplicates the hits."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        index: ChunkIndex,
        *,
        similarity_threshold: float | None = None,
        strict_top_k: bool | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            embedder: Provider used to embed queries.
            index: Chunk index searched for candidates.
            similarity_threshold: Token-Jaccard ratio above which two chunks are
                treated as duplicates. Defaults to config.DEDUP_SIMILARITY_THRESHOLD.
            strict_top_k: When true, return at most ``top_n`` contexts instead of
                ``top_n + 1``. Defaults to config.RETRIEVAL_STRICT_TOP_K.
        """
        self.embedder = embedder
        self.index = index
        self.similarity_threshold = (
            config.DEDUP_SIMILARITY_THRESHOLD
            if similarity_threshold is None
            else similarity_threshold
        )
        self.strict_top_k = (
            config.RETRIEVAL_STRICT_TOP_K if strict_top_k is None else strict_top_k
        )

    def max_contexts(self, top_n: int) -> int:
        return top_n if self.strict_top_k else top_n + 1

    def deduplicate(
        self,
        candidates: list[tuple[float, RetrievedContext]],
        top_n: int,
    ) -> list[RetrievedContext]:
        """Keep candidates in order, skipping substrings and near-duplicates.

        Returns:
            Accepted contexts in the order they were given.
        """
        limit = self.max_contexts(top_n)
        seen: list[str] = []
        accepted: list[RetrievedContext] = []

        for score, candidate in candidates:
            text = candidate.context.strip()
            if not text:
                continue
            if any(
                is_near_duplicate(text, existing, self.similarity_threshold)
                for existing in seen
            ):
                logger.debug("Skipped duplicate chunk with score %.4f", score)
                continue
            if len(accepted) >= limit:
                break
            seen.append(text)
            accepted.append(RetrievedContext(source=candidate.source, context=text))
            logger.info("Added unique chunk with score %.4f", score)

        return accepted

    async def retrieve(
        self, query: str, top_n: int | None = None
    ) -> tuple[str, list[RetrievedContext]]:
        """Return the joined context string and the contexts it was built from."""
        if top_n is None:
            top_n = config.RETRIEVAL_TOP_K

        query_embedding = await asyncio.to_thread(self.embedder.encode, query)
        hits = await asyncio.to_thread(self.index.query, query_embedding, top_n)

        candidates = [
            (score, RetrievedContext(source=chunk.source, context=chunk.content))
            for score, chunk in sorted(hits, key=lambda hit: hit[0], reverse=True)
        ]
        contexts = self.deduplicate(candidates, top_n)
        joined_context = CONTEXT_SEPARATOR.join(c.context for c in contexts)

        logger.info(
            "Retrieved %d contexts (%d chars) for query: %s",
            len(contexts),
            len(joined_context),
            query,
        )
        return joined_context, contexts
