"""Tests for the similarity score."""

import pytest

from cat_tracker.features import FeatureRecord
from cat_tracker.scoring import score

PAIRS = [
    pytest.param(FeatureRecord(), FeatureRecord(), id="both-empty"),
    pytest.param(
        FeatureRecord(breed="siamese", colors=["cream"]),
        FeatureRecord(colors=["cream", "brown", "black"]),
        id="partial",
    ),
    pytest.param(
        FeatureRecord(breed="a", colors=["x", "y", "z"], patterns=["p"], distinctive_features=["d", "e"]),
        FeatureRecord(breed="a", colors=["x"], patterns=["p"], distinctive_features=["d"]),
        id="candidate-superset",
    ),
    pytest.param(
        FeatureRecord(colors=["grey"]),
        FeatureRecord(breed="persian", patterns=["solid"]),
        id="disjoint",
    ),
]


class TestScore:
    def test_perfect_match_scores_100(self, whiskers_features):
        """Should give full marks when breed and every set are identical."""
        assert score(whiskers_features, whiskers_features) == 100

    def test_no_overlap_scores_0(self):
        candidate = FeatureRecord(
            breed="siamese", colors=["cream"], patterns=["pointed"], distinctive_features=["blue eyes"]
        )
        query = FeatureRecord(
            breed="maine_coon", colors=["brown"], patterns=["tabby"], distinctive_features=["ear tufts"]
        )
        assert score(candidate, query) == 0

    def test_breed_only(self):
        assert score(FeatureRecord(breed="siamese"), FeatureRecord(breed="siamese")) == 20

    def test_missing_breed_never_matches(self):
        """Should not award breed credit when both breeds are absent."""
        assert score(FeatureRecord(), FeatureRecord()) == 0

    def test_overlap_is_relative_to_query_size(self):
        candidate = FeatureRecord(colors=["orange"])
        query = FeatureRecord(colors=["orange", "white"])
        assert score(candidate, query) == pytest.approx(12.5)

    def test_empty_query_dimension_contributes_nothing(self):
        """Should score 0 for a dimension the query extracted nothing for."""
        candidate = FeatureRecord(colors=["black"], patterns=["solid"], distinctive_features=["scar"])
        assert score(candidate, FeatureRecord()) == 0

    def test_weights(self):
        base = dict(colors=["a"], patterns=["b"], distinctive_features=["c"])
        query = FeatureRecord(**base)
        assert score(FeatureRecord(colors=["a"]), query) == 25
        assert score(FeatureRecord(patterns=["b"]), query) == 25
        assert score(FeatureRecord(distinctive_features=["c"]), query) == 30
        assert score(FeatureRecord(**base), query) == 80

    def test_age_and_size_do_not_contribute(self):
        candidate = FeatureRecord(estimated_age="senior", size="large")
        query = FeatureRecord(estimated_age="senior", size="large")
        assert score(candidate, query) == 0

    def test_case_and_spacing_differences_still_match(self):
        candidate = FeatureRecord(distinctive_features=["White Paws"])
        query = FeatureRecord(distinctive_features=["white  paws"])
        assert score(candidate, query) == 30

    @pytest.mark.parametrize("candidate, query", PAIRS)
    def test_is_bounded(self, candidate, query):
        assert 0 <= score(candidate, query) <= 100

    @pytest.mark.parametrize("candidate, query", PAIRS)
    def test_is_deterministic(self, candidate, query):
        assert len({score(candidate, query) for _ in range(5)}) == 1
