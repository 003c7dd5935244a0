"""Tests for Reciprocal Rank Fusion."""

from __future__ import annotations

import pytest

from ragcrawler.index.fusion import reciprocal_rank_fusion


class TestReciprocalRankFusion:
    """Test reciprocal_rank_fusion scoring and ordering."""

    def test_score_in_both_lists(self) -> None:
        """Item at rank r1 and r2 should score 1/(k+r1) + 1/(k+r2)."""
        fused = reciprocal_rank_fusion({"dense": ["a", "b", "c"], "sparse": ["c", "a"]}, k=60)
        scores = {entry.key: entry.score for entry in fused}

        assert scores["a"] == pytest.approx(1 / 61 + 1 / 62)
        assert scores["c"] == pytest.approx(1 / 63 + 1 / 61)

    def test_score_in_one_list(self) -> None:
        """Item present in a single list only gets that term."""
        fused = reciprocal_rank_fusion({"dense": ["a", "b"], "sparse": ["a"]}, k=10)
        scores = {entry.key: entry.score for entry in fused}

        assert scores["b"] == pytest.approx(1 / 12)

    def test_ranks_recorded(self) -> None:
        fused = reciprocal_rank_fusion({"dense": ["a", "b"], "sparse": ["b"]})
        ranks = {entry.key: entry.ranks for entry in fused}

        assert ranks == {"a": {"dense": 1}, "b": {"dense": 2, "sparse": 1}}

    def test_order_descending(self) -> None:
        """Agreement between lists should beat a single top rank."""
        fused = reciprocal_rank_fusion({"dense": ["x", "y"], "sparse": ["y", "z"]}, k=60)

        assert [entry.key for entry in fused] == ["y", "x", "z"]
        assert all(
            earlier.score >= later.score for earlier, later in zip(fused, fused[1:])
        )

    def test_one_empty_list(self) -> None:
        """Fusion should proceed with the non-empty list only."""
        fused = reciprocal_rank_fusion({"dense": [], "sparse": ["a", "b"]}, k=60)

        assert [entry.key for entry in fused] == ["a", "b"]
        assert fused[0].score == pytest.approx(1 / 61)

    def test_all_empty(self) -> None:
        assert reciprocal_rank_fusion({"dense": [], "sparse": []}) == []

    def test_limit(self) -> None:
        """Should never return more than the limit."""
        fused = reciprocal_rank_fusion(
            {"dense": list(range(30)), "sparse": list(range(30, 60))}, limit=50
        )
        assert len(fused) == 50

    def test_custom_key(self) -> None:
        """Should match items across lists by key, keeping the first object seen."""
        dense = [{"id": 1, "src": "dense"}]
        sparse = [{"id": 1, "src": "sparse"}]

        fused = reciprocal_rank_fusion(
            {"dense": dense, "sparse": sparse}, key=lambda item: item["id"]
        )

        assert len(fused) == 1
        assert fused[0].item["src"] == "dense"

    def test_negative_constant(self) -> None:
        with pytest.raises(ValueError):
            reciprocal_rank_fusion({"dense": ["a"]}, k=-1)
