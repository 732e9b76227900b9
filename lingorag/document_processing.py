"""Document loading and structure-aware text chunking."""

import re
from pathlib import Path

import pypdf

from .config import config
from .models import DocumentChunk

logger = config.get_logger(__name__)

SECTION_SEPARATOR = re.compile(r"-{5,}")
PARAGRAPH_SEPARATOR = re.compile(r"\n\s*\n+")
SENTENCE_SEPARATOR = re.compile(r"[.!?]+\s+")
WHITESPACE_RUN = re.compile(r"\s+")

DEFAULT_MAX_CHUNK_SIZE = 450
PREVIEW_CHUNKS = 3
PREVIEW_LENGTH = 100


class DocumentLoader:
    """Handles loading of PDF and TXT documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            # Page boundaries become section separators for the chunker.
            return "\n-----\n".join(pages)

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a TXT file.

        Returns:
            The extracted text content from the TXT file as a string.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
            logger.info("Loaded %s (%d chars)", file_path.name, len(text))
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return text

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext == ".txt":
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


def create_structured_chunks(
    text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
) -> list[str]:
    """Split text on ``-----`` section rules, packing oversized sections by paragraph.

    Sections that fit within ``max_chunk_size`` are emitted verbatim (trimmed).
    Larger sections are split on blank lines and consecutive paragraphs are
    packed greedily; a single paragraph longer than the limit becomes its own
    oversized chunk. Output order follows the document.

    Returns:
        Ordered list of non-blank chunk strings.
    """
    chunks: list[str] = []

    for section in SECTION_SEPARATOR.split(text):
        trimmed_section = section.strip()
        if not trimmed_section:
            continue

        if len(trimmed_section) <= max_chunk_size:
            chunks.append(trimmed_section)
        else:
            chunks.extend(_pack_paragraphs(trimmed_section, max_chunk_size))

    return [chunk for chunk in chunks if chunk.strip()]


def _pack_paragraphs(section: str, max_chunk_size: int) -> list[str]:
    chunks: list[str] = []
    current = ""

    for paragraph in PARAGRAPH_SEPARATOR.split(section):
        normalized = WHITESPACE_RUN.sub(" ", paragraph.strip())
        if not normalized:
            continue

        if current and len(current) + len(normalized) + 2 > max_chunk_size:
            chunks.append(current.strip())
            current = ""

        current = f"{current}\n\n{normalized}" if current else normalized

        if len(current) > max_chunk_size:
            chunks.append(current.strip())
            current = ""

    if current:
        chunks.append(current.strip())

    return chunks


def create_smart_chunks(
    text: str,
    target_chunk_size: int = 250,
    max_chunk_size: int = 350,
) -> list[str]:
    """Structured chunking with a sentence-level fallback for oversized chunks.

    Returns:
        Ordered list of non-blank chunk strings.
    """
    final_chunks: list[str] = []

    for chunk in create_structured_chunks(text, max_chunk_size):
        if len(chunk) <= max_chunk_size:
            final_chunks.append(chunk)
        else:
            final_chunks.extend(
                _split_by_sentences(chunk, target_chunk_size, max_chunk_size)
            )

    return [chunk for chunk in final_chunks if chunk.strip()]


def _split_by_sentences(text: str, target_size: int, max_size: int) -> list[str]:
    chunks: list[str] = []
    current = ""

    for sentence in SENTENCE_SEPARATOR.split(text):
        trimmed = sentence.strip()
        if not trimmed:
            continue

        # Close early once the target is reached, never exceed max_size unless
        # a single sentence is already longer than it.
        if current and (
            len(current) + len(trimmed) + 2 > max_size or len(current) >= target_size
        ):
            chunks.append(current.strip())
            current = ""

        current = f"{current}. {trimmed}" if current else trimmed

    if current:
        chunks.append(current.strip())

    return chunks


class TextChunker:
    """Turns a document's text into ``DocumentChunk`` objects."""

    STRATEGIES = ("structured", "smart")

    def __init__(
        self,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        strategy: str = "structured",
        target_chunk_size: int = 250,
    ) -> None:
        """Initialize the TextChunker.

        Args:
            max_chunk_size: Upper bound for chunk length (except unsplittable units).
            strategy: "structured" (sections, then paragraphs) or "smart"
                (additionally splits oversized chunks by sentence).
            target_chunk_size: Preferred chunk length for the "smart" strategy.

        Raises:
            ValueError: If the strategy or sizes are invalid.
        """
        if strategy not in self.STRATEGIES:
            msg = f"Unsupported chunking strategy: {strategy}"
            raise ValueError(msg)
        if max_chunk_size <= 0:
            msg = f"max_chunk_size must be positive, got {max_chunk_size}"
            raise ValueError(msg)
        self.max_chunk_size = max_chunk_size
        self.strategy = strategy
        self.target_chunk_size = min(target_chunk_size, max_chunk_size)

    def split(self, text: str) -> list[str]:
        if self.strategy == "smart":
            return create_smart_chunks(
                text,
                target_chunk_size=self.target_chunk_size,
                max_chunk_size=self.max_chunk_size,
            )
        return create_structured_chunks(text, self.max_chunk_size)

    def chunk_text(
        self,
        text: str,
        source: str = "document",
        document_id: int | None = None,
    ) -> list[DocumentChunk]:
        """Split text into ordered chunks tagged with their source.

        Returns:
            A list of DocumentChunk objects in document order.
        """
        pieces = self.split(text)
        chunks = [
            DocumentChunk(
                content=piece,
                source=source,
                document_id=document_id,
                metadata={"chunk_index": index, "length": len(piece)},
            )
            for index, piece in enumerate(pieces)
        ]

        logger.info("Text split into %d chunks", len(chunks))
        for index, chunk in enumerate(chunks[:PREVIEW_CHUNKS]):
            logger.debug(
                "Chunk %d preview: %s...", index, chunk.content[:PREVIEW_LENGTH]
            )
        return chunks
