"""VectorRAG: retrieval-augmented generation core."""

__version__ = "0.1.0"
