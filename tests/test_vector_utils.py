"""Tests for vector store utility functions."""

import math

import pytest

from vectorrag.errors import DimensionMismatch
from vectorrag.service.vector_store.utils import (
    cosine_similarity,
    parse_embedding,
    parse_metadata,
    rank_matches,
    split_record_metadata,
    vector_payload,
)


class TestCosineSimilarity:
    """Tests for cosine_similarity function."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_known_angle(self):
        """45 degrees apart gives cos(45°)."""
        assert cosine_similarity([1.0, 0.0], [1.0, 1.0]) == pytest.approx(math.sqrt(2) / 2)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "a,b",
        [
            ([0.3, -1.2, 4.5], [2.0, 0.7, -0.4]),
            ([-1.0, -2.0, 0.5, 3.25], [4.0, -0.1, -2.5, 1.0]),
            ([0.001, 1000.0], [-7.0, 0.25]),
            ([1.0, 0.0, -1.0], [0.0, 0.0, 0.0]),
        ],
    )
    def test_symmetric(self, a, b):
        assert cosine_similarity(a, b) == cosine_similarity(b, a)

    def test_zero_magnitude_gives_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0

    def test_dimension_mismatch_raises(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0])

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2


class TestParseEmbedding:
    """Tests for parse_embedding function."""

    def test_parses_json_text(self):
        assert parse_embedding("[0.5, 1, -2.25]") == [0.5, 1.0, -2.25]

    def test_accepts_lists(self):
        assert parse_embedding([1, 2]) == [1.0, 2.0]

    @pytest.mark.parametrize("raw", [None, "", "   ", "[]", [], "not json", '{"a": 1}', '["a", "b"]', [True, False]])
    def test_rejects_empty_or_malformed(self, raw):
        assert parse_embedding(raw) is None


class TestParseMetadata:
    """Tests for parse_metadata function."""

    def test_dict_is_copied(self):
        original = {"language": "en"}
        parsed = parse_metadata(original)

        assert parsed == original
        assert parsed is not original

    def test_json_text(self):
        assert parse_metadata('{"chunk_index": 3}') == {"chunk_index": 3}

    @pytest.mark.parametrize("raw", [None, "", "oops", "[1, 2]", 42])
    def test_invalid_gives_empty_dict(self, raw):
        assert parse_metadata(raw) == {}


class TestRankMatches:
    """Tests for rank_matches function."""

    def test_threshold_sort_and_limit(self):
        scored = [("a", 0.4), ("b", 0.9), ("c", 0.6), ("d", 0.75)]

        assert rank_matches(scored, limit=2, threshold=0.5) == [("b", 0.9), ("d", 0.75)]

    def test_threshold_is_inclusive(self):
        assert rank_matches([("a", 0.5)], limit=5, threshold=0.5) == [("a", 0.5)]

    def test_ties_broken_by_id(self):
        scored = [("z", 0.8), ("a", 0.8), ("m", 0.8)]

        assert [item for item, _ in rank_matches(scored, 10, 0.0)] == ["a", "m", "z"]

    def test_non_positive_limit(self):
        assert rank_matches([("a", 0.9)], limit=0, threshold=0.0) == []
        assert rank_matches([("a", 0.9)], limit=-3, threshold=0.0) == []


class TestPayloadHelpers:
    """Tests for vector_payload and split_record_metadata."""

    def test_vector_payload_shape(self):
        payload = vector_payload("doc-1", "hello", {"chunk_index": 2, "title": "T"})

        assert payload["content"] == "hello"
        assert payload["documentId"] == "doc-1"
        assert payload["chunk_index"] == 2
        assert payload["metadata"] == {"chunk_index": 2, "title": "T"}

    def test_split_record_metadata(self):
        document_id, content, rest = split_record_metadata(
            {"documentId": "doc-1", "content": "text", "chunk_index": 0}
        )

        assert (document_id, content, rest) == ("doc-1", "text", {"chunk_index": 0})

    def test_split_record_metadata_defaults(self):
        document_id, content, rest = split_record_metadata({"chunk_index": 1})

        assert document_id == "unknown"
        assert content == ""
        assert rest == {"chunk_index": 1}
