"""Unit tests for ranker models and metrics."""

import math

import pytest
from pydantic import ValidationError

from history_ranker.ranker import (
    FEATURE_NAMES,
    FeatureVector,
    ModelWeights,
    RankedPage,
    RankerMetrics,
)


class TestFeatureVector:
    """Tests for FeatureVector."""

    def test_values_follow_feature_order(self) -> None:
        """Test values are returned in feature order."""
        fv = FeatureVector(
            text_match=1.0,
            recency=2.0,
            frequency=3.0,
            navigation=4.0,
            time_of_day=5.0,
            session=6.0,
            regularity=7.0,
        )
        assert fv.values() == (1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0)

    def test_regularity_defaults_to_neutral(self) -> None:
        """Test regularity defaults to 0.5."""
        assert FeatureVector().regularity == 0.5

    def test_to_dict(self) -> None:
        """Test the dictionary uses feature names."""
        assert list(FeatureVector().to_dict()) == list(FEATURE_NAMES)


class TestModelWeights:
    """Tests for ModelWeights records."""

    def test_to_record_shape(self) -> None:
        """Test the persisted record uses camelCase feature keys."""
        record = ModelWeights(bias=0.2, time_of_day=0.1).to_record()
        assert record["bias"] == 0.2
        assert set(record["weights"]) == {
            "textMatch",
            "recency",
            "frequency",
            "navigation",
            "timeOfDay",
            "session",
            "regularity",
        }
        assert record["weights"]["timeOfDay"] == 0.1

    def test_record_round_trip(self) -> None:
        """Test a record restores the same weights."""
        weights = ModelWeights(bias=-0.4, text_match=1.3, navigation=0.7)
        assert ModelWeights.from_record(weights.to_record()) == weights

    def test_partial_record_merges_with_base(self) -> None:
        """Test missing keys keep the base values."""
        base = ModelWeights(recency=0.3, session=0.2)
        restored = ModelWeights.from_record({"weights": {"recency": 0.9}}, base=base)
        assert restored.recency == 0.9
        assert restored.session == 0.2
        assert restored.bias == 0.0

    def test_non_mapping_weights_rejected(self) -> None:
        """Test a malformed weights entry raises TypeError."""
        with pytest.raises(TypeError):
            ModelWeights.from_record({"weights": [1, 2, 3]})

    def test_non_finite_rejected(self) -> None:
        """Test NaN and infinite values are rejected."""
        with pytest.raises(ValidationError):
            ModelWeights.from_record({"bias": math.nan})
        with pytest.raises(ValidationError):
            ModelWeights.from_record({"weights": {"textMatch": math.inf}})

    def test_non_numeric_rejected(self) -> None:
        """Test non-numeric values are rejected."""
        with pytest.raises(ValidationError):
            ModelWeights.from_record({"weights": {"recency": "high"}})

    def test_from_values(self) -> None:
        """Test building from an ordered tuple."""
        weights = ModelWeights.from_values(0.1, (1.0, 0.3, 0.2, 0.5, 0.1, 0.2, 0.05))
        assert weights.values() == (1.0, 0.3, 0.2, 0.5, 0.1, 0.2, 0.05)
        assert weights.bias == 0.1


class TestRankedPage:
    """Tests for RankedPage."""

    def test_immutable(self) -> None:
        """Test ranked results are frozen."""
        page = RankedPage(page_id="p", title="t", url="u", score=1.0)
        with pytest.raises(ValidationError):
            page.score = 2.0  # type: ignore[misc]


class TestRankerMetrics:
    """Tests for RankerMetrics."""

    def test_singleton_and_reset(self) -> None:
        """Test the shared instance is replaced on reset."""
        RankerMetrics.reset()
        first = RankerMetrics.get_instance()
        assert RankerMetrics.get_instance() is first
        RankerMetrics.reset()
        assert RankerMetrics.get_instance() is not first

    def test_increment(self) -> None:
        """Test counters increment by the given amount."""
        metrics = RankerMetrics()
        metrics.increment("clicks_total")
        metrics.increment("training_updates_total", 5)
        assert metrics.clicks_total == 1
        assert metrics.training_updates_total == 5

    def test_record_rank(self) -> None:
        """Test a displayed query updates the counters."""
        metrics = RankerMetrics()
        metrics.record_rank(candidates=10, filtered_out=3, duplicates=1, duration_ms=2.5)
        assert metrics.queries_total == 1
        assert metrics.candidates_total == 10
        assert metrics.filtered_out_total == 3
        assert metrics.duplicates_removed_total == 1
        assert metrics.last_rank_duration_ms == 2.5

    def test_to_dict_excludes_private_fields(self) -> None:
        """Test the dictionary has only public metric values."""
        data = RankerMetrics().to_dict()
        assert "_lock" not in data
        assert data["queries_total"] == 0
        assert "weight_save_failures_total" in data
