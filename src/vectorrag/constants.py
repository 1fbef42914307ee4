"""Application-wide constants and defaults for VectorRAG.

This module provides a single source of truth for configuration defaults,
magic numbers, and other constants used throughout the application.
"""

import os

# =============================================================================
# Chunking
# =============================================================================
DEFAULT_CHUNK_SIZE = 1000  # Characters per chunk window
DEFAULT_CHUNK_OVERLAP = 200  # Characters shared by consecutive windows
MAX_EMBEDDING_INPUT_CHARS = 8000  # Text sent to the embedding model per chunk
INGESTION_BATCH_SIZE = 20  # Chunks embedded concurrently per batch

# =============================================================================
# Search
# =============================================================================
DEFAULT_VECTOR_SIMILARITY_THRESHOLD = 0.7
VARIANT_SIMILARITY_THRESHOLD = 0.5  # Lowered threshold for query variants
DEFAULT_MAX_RESULTS = 10
DEFAULT_TOP_K = 5  # Default limit for tool and CLI searches
ADJACENT_SIMILARITY_DECAY = 0.7  # Neighbour similarity = hit similarity * decay
MAX_EXPANDED_RESULTS = 15  # Hard cap on results after context expansion
EXPANDED_RESULTS_FACTOR = 3  # Expanded results capped at limit * factor
MAX_EXPANSION_RANGE = 3

NO_RESULTS_MESSAGE = (
    "No relevant documents found with sufficient similarity. The query may be too "
    "specific or the information may not be available in the knowledge base."
)

# =============================================================================
# Embedding Cache
# =============================================================================
EMBEDDING_CACHE_TTL_SECONDS = 15 * 60
EMBEDDING_CACHE_MAX_ENTRIES = 1000
EMBEDDING_CACHE_KEY_LENGTH = 100

# =============================================================================
# LLM Settings
# =============================================================================
TRANSLATION_TEMPERATURE = 0.1
TRANSLATION_MAX_TOKENS = 150
EXPANSION_TEMPERATURE = 0.3
EXPANSION_MAX_TOKENS = 200
SUMMARY_TEMPERATURE = 0.2
SUMMARY_MAX_TOKENS = 120

# =============================================================================
# Display Settings
# =============================================================================
CONTENT_PREVIEW_LENGTH = 200  # Characters to show in content previews

# =============================================================================
# Default URLs, Hosts and Tables
# =============================================================================
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_LOCAL_MCP_URL = "http://localhost:8001/sse"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///vectorrag.db"
DEFAULT_TABLE_NAME = "rag"
DEFAULT_RAVENDB_URL = "http://localhost:8080"
DEFAULT_RAVENDB_DATABASE = "vectorrag"
DEFAULT_VECTOR_COLLECTION = "DocumentChunks"

# =============================================================================
# Embedding Model Defaults
# =============================================================================
EMBEDDING_DEFAULTS = {
    "ollama": "nomic-embed-text",
    "gemini": "text-embedding-004",
}

# Default embedding dimensions (for the RavenDB vector index)
DEFAULT_EMBEDDING_DIMENSIONS = 768


def get_embedding_model(service: str | None = None) -> str:
    """Get the default embedding model for a given LLM service.

    Checks the EMBEDDING_MODEL environment variable first, then falls back
    to service-specific defaults.

    Args:
        service: The LLM service name ("ollama" or "gemini").
                If None, uses LLM_SERVICE env var or defaults to "ollama".

    Returns:
        str: The embedding model name to use.
    """
    env_model = os.getenv("EMBEDDING_MODEL")
    if env_model:
        return env_model

    if service is None:
        service = os.getenv("LLM_SERVICE", "ollama")

    return EMBEDDING_DEFAULTS.get(service, EMBEDDING_DEFAULTS["ollama"])


def get_chunk_settings() -> tuple[int, int]:
    """Get chunk size and overlap from RAG_CHUNK_SIZE / RAG_CHUNK_OVERLAP.

    Returns:
        tuple[int, int]: (chunk_size, chunk_overlap)
    """
    chunk_size = int(os.getenv("RAG_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE)))
    chunk_overlap = int(os.getenv("RAG_CHUNK_OVERLAP", str(DEFAULT_CHUNK_OVERLAP)))
    return chunk_size, chunk_overlap
