"""Utility functions for vector store operations."""

import json
import math
from typing import Any

from vectorrag.errors import DimensionMismatch


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        float: Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude

    Raises:
        DimensionMismatch: If the vectors have different lengths
    """
    if len(vec_a) != len(vec_b):
        raise DimensionMismatch(len(vec_a), len(vec_b))

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def parse_embedding(raw: Any) -> list[float] | None:
    """Decode a stored embedding.

    Accepts a list or a JSON-encoded list. Returns None for anything that is
    missing, empty or not a list of numbers.
    """
    if raw is None:
        return None

    value = raw
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return None
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value):
        return None

    return [float(x) for x in value]


def parse_metadata(raw: Any) -> dict[str, Any]:
    """Decode a stored metadata column into a dict (empty on failure)."""
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, (str, bytes)) and raw:
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        return value if isinstance(value, dict) else {}
    return {}


def rank_matches(
    scored: list[tuple[str, float]], limit: int, threshold: float
) -> list[tuple[str, float]]:
    """Threshold, sort descending and truncate (id, similarity) pairs.

    Shared by every vector store so that they rank identically. Ties are
    broken by id to keep the ordering deterministic.
    """
    kept = [(item_id, score) for item_id, score in scored if score >= threshold]
    kept.sort(key=lambda item: (-item[1], item[0]))
    return kept[: max(limit, 0)]


def vector_payload(document_id: str, content: str, metadata: dict[str, Any]) -> dict[str, Any]:
    """Shape the metadata returned by get_vector_metadata.

    The chunk metadata is flattened into the top level and also kept as a
    nested ``metadata`` copy, next to ``content`` and ``documentId``.
    """
    return {
        **metadata,
        "content": content,
        "documentId": document_id,
        "metadata": dict(metadata),
    }


def split_record_metadata(metadata: dict[str, Any]) -> tuple[str, str, dict[str, Any]]:
    """Pull documentId and content out of a VectorRecord's metadata.

    Returns:
        tuple: (document_id, content, remaining_metadata)
    """
    rest = dict(metadata)
    document_id = rest.pop("documentId", None) or "unknown"
    content = rest.pop("content", None) or ""
    return str(document_id), content, rest
