"""Fixed-size, overlapping character chunking of raw documents."""

from typing import Any

from vectorrag.constants import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE
from vectorrag.errors import InvalidConfig
from vectorrag.rag.models import ChunkDraft


def validate_chunk_settings(chunk_size: int, chunk_overlap: int) -> None:
    """Reject chunk settings for which the window would never advance.

    Args:
        chunk_size: Window size in characters
        chunk_overlap: Characters shared by consecutive windows

    Raises:
        InvalidConfig: If size is not positive, overlap is negative,
            or overlap is not strictly smaller than size.
    """
    if chunk_size <= 0:
        raise InvalidConfig(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise InvalidConfig(f"chunk_overlap must not be negative, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise InvalidConfig(
            f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def chunk_document(
    document_id: str,
    content: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    metadata: dict[str, Any] | None = None,
) -> list[ChunkDraft]:
    """Split text into overlapping fixed-size character windows.

    The window advances by ``chunk_size - chunk_overlap`` characters. Windows
    that contain only whitespace are skipped and do not consume a chunk_index.

    Args:
        document_id: Id of the parent document
        content: The text to chunk
        chunk_size: Number of characters per chunk (default: 1000)
        chunk_overlap: Number of characters to overlap between chunks (default: 200)
        metadata: Document metadata copied into every chunk

    Returns:
        list[ChunkDraft]: Chunks in document order with chunk_index,
            start_char and end_char in their metadata

    Raises:
        InvalidConfig: If the chunk settings are unusable
    """
    validate_chunk_settings(chunk_size, chunk_overlap)

    base_metadata = dict(metadata or {})
    step = chunk_size - chunk_overlap
    text_length = len(content)
    drafts: list[ChunkDraft] = []

    for start in range(0, text_length, step):
        end = min(start + chunk_size, text_length)
        window = content[start:end]

        if not window.strip():
            continue

        drafts.append(
            ChunkDraft(
                document_id=document_id,
                content=window,
                metadata={
                    **base_metadata,
                    "chunk_index": len(drafts),
                    "start_char": start,
                    "end_char": end,
                },
            )
        )

    return drafts
