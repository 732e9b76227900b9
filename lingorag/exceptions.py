"""Exception hierarchy for LingoRAG."""


class LingoRAGError(Exception):
    """Base class for all LingoRAG errors."""


class KnowledgeBaseError(LingoRAGError):
    """Knowledge base could not be loaded, chunked, embedded or stored."""


class GenerationError(LingoRAGError):
    """A single generation request failed."""
