"""Exception taxonomy for the RAG core."""


class RAGError(Exception):
    """Base class for VectorRAG errors."""


class InvalidConfig(RAGError):
    """Raised when a configuration value cannot work (e.g. overlap >= chunk size)."""


class EmbeddingFailure(RAGError):
    """Raised when the embedding provider could not produce a vector."""


class StoreFailure(RAGError):
    """Raised when a storage backend fails. Fatal to the calling operation."""


class DimensionMismatch(RAGError):
    """Raised when two vectors of different dimensionality are compared."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Vector dimensions do not match: {expected} != {actual}")
        self.expected = expected
        self.actual = actual


class FormattingFailure(RAGError):
    """Raised when a result summary could not be produced by the LLM."""
