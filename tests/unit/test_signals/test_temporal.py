"""Unit tests for recency, time-of-day and regularity signals."""

import math
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from history_ranker.config import RecencyConfig, TimeOfDayConfig
from history_ranker.signals import (
    HOURS_PER_DAY,
    NEUTRAL_REGULARITY,
    RecencyModel,
    RegularityModel,
    TimeOfDayModel,
    decay,
    dwell_factor,
    local_hour,
    regularity_score,
    shannon_entropy,
)
from tests.helpers.history import make_visit
from tests.helpers.time import FIXED_NOW


class TestDecayAndDwell:
    """Tests for the decay and dwell helpers."""

    def test_decay_halves_at_half_life(self) -> None:
        """Test decay is 0.5 after exactly one half-life."""
        assert decay(3600.0, 3600.0) == pytest.approx(0.5)
        assert decay(0.0, 3600.0) == 1.0

    def test_dwell_factor_neutral_without_dwell(self) -> None:
        """Test zero, negative and non-finite dwell give no boost."""
        config = RecencyConfig()
        assert dwell_factor(0.0, config) == 1.0
        assert dwell_factor(-5.0, config) == 1.0
        assert dwell_factor(math.inf, config) == 1.0

    def test_dwell_factor_at_scale(self) -> None:
        """Test dwell equal to the scale earns half the maximum boost."""
        assert dwell_factor(30.0, RecencyConfig()) == pytest.approx(1.15)

    def test_dwell_factor_bounded(self) -> None:
        """Test long dwell approaches but never exceeds the cap."""
        factor = dwell_factor(1e9, RecencyConfig())
        assert 1.29 < factor <= 1.3


class TestRecencyModel:
    """Tests for RecencyModel."""

    def test_visit_now_sums_weights(self) -> None:
        """Test a visit at the reference time scores the sum of scale weights."""
        model = RecencyModel([make_visit("v1", "p", FIXED_NOW)])
        score = model.score("p", FIXED_NOW)
        assert score.value == pytest.approx(1.0 + 0.5 + 0.2)
        assert score.future_visits == 0

    def test_recent_beats_old(self) -> None:
        """Test many recent visits outscore a single old visit."""
        visits = [
            make_visit(f"x{i}", "x", FIXED_NOW - timedelta(minutes=5 * i)) for i in range(10)
        ]
        visits.append(make_visit("y1", "y", FIXED_NOW - timedelta(days=14)))
        model = RecencyModel(visits)
        assert model.score("x", FIXED_NOW).value > model.score("y", FIXED_NOW).value

    def test_future_visits_skipped(self) -> None:
        """Test future-dated visits contribute nothing and are counted."""
        model = RecencyModel([make_visit("v1", "p", FIXED_NOW + timedelta(hours=1))])
        score = model.score("p", FIXED_NOW)
        assert score.value == 0.0
        assert score.future_visits == 1

    def test_unknown_page(self) -> None:
        """Test pages without visits score 0."""
        assert RecencyModel([]).score("p", FIXED_NOW).value == 0.0

    def test_dwell_boosts_recency(self) -> None:
        """Test a visit with dwell time outscores one without."""
        model = RecencyModel(
            [
                make_visit("v1", "dwelled", FIXED_NOW - timedelta(hours=1), active_seconds=120),
                make_visit("v2", "bounced", FIXED_NOW - timedelta(hours=1)),
            ]
        )
        assert model.score("dwelled", FIXED_NOW).value > model.score("bounced", FIXED_NOW).value


class TestTimeOfDayModel:
    """Tests for TimeOfDayModel."""

    @pytest.fixture
    def visits(self) -> list:
        """Three visits at 14:00 UTC and one at 09:00 UTC."""
        day = FIXED_NOW.replace(hour=0)
        return [
            make_visit("v1", "p", day + timedelta(hours=14)),
            make_visit("v2", "p", day - timedelta(days=1) + timedelta(hours=14, minutes=30)),
            make_visit("v3", "p", day - timedelta(days=2) + timedelta(hours=14, minutes=59)),
            make_visit("v4", "p", day + timedelta(hours=9)),
        ]

    def test_probability(self, visits: list) -> None:
        """Test probability is the share of visits in the hour."""
        model = TimeOfDayModel(visits, tz=UTC)
        assert model.probability("p", 14) == pytest.approx(0.75)
        assert model.probability("p", 9) == pytest.approx(0.25)
        assert model.probability("p", 3) == 0.0

    def test_probability_at(self, visits: list) -> None:
        """Test the hour is taken from the reference time."""
        model = TimeOfDayModel(visits, tz=UTC)
        assert model.probability_at("p", FIXED_NOW) == pytest.approx(0.75)

    def test_histogram(self, visits: list) -> None:
        """Test the histogram has one bucket per hour."""
        histogram = TimeOfDayModel(visits, tz=UTC).histogram("p")
        assert len(histogram) == HOURS_PER_DAY
        assert sum(histogram) == 4
        assert histogram[14] == 3

    def test_unknown_page(self, visits: list) -> None:
        """Test pages without visits yield 0 even with smoothing."""
        model = TimeOfDayModel(visits, TimeOfDayConfig(smoothing_alpha=1.0), tz=UTC)
        assert model.probability("other", 14) == 0.0

    def test_smoothing(self, visits: list) -> None:
        """Test additive smoothing spreads mass to empty hours."""
        model = TimeOfDayModel(visits, TimeOfDayConfig(smoothing_alpha=1.0), tz=UTC)
        assert model.probability("p", 14) == pytest.approx(4 / 28)
        assert model.probability("p", 3) == pytest.approx(1 / 28)

    def test_local_hour_uses_timezone(self) -> None:
        """Test hours are bucketed in the configured timezone."""
        assert local_hour(FIXED_NOW, UTC) == 14
        assert local_hour(FIXED_NOW, ZoneInfo("America/New_York")) == 10


class TestRegularity:
    """Tests for the regularity score."""

    def test_neutral_for_few_visits(self) -> None:
        """Test fewer than two visits give the neutral score."""
        assert regularity_score([]) == NEUTRAL_REGULARITY
        assert regularity_score([FIXED_NOW]) == NEUTRAL_REGULARITY

    def test_perfectly_regular_visits(self) -> None:
        """Test equal intervals give cv 0 and maximal entropy."""
        times = [FIXED_NOW - timedelta(days=d) for d in range(4)]
        expected = 1 + math.log(3) / math.log(4)
        assert regularity_score(times) == pytest.approx(expected)

    def test_irregular_scores_lower(self) -> None:
        """Test bursty visits score lower than daily ones."""
        regular = [FIXED_NOW - timedelta(days=d) for d in range(4)]
        bursty = [
            FIXED_NOW,
            FIXED_NOW - timedelta(hours=1),
            FIXED_NOW - timedelta(hours=2),
            FIXED_NOW - timedelta(days=10),
        ]
        assert regularity_score(bursty) < regularity_score(regular)

    def test_order_independent(self) -> None:
        """Test visit order does not matter."""
        times = [FIXED_NOW - timedelta(days=d, hours=d * d) for d in range(5)]
        assert regularity_score(times) == pytest.approx(regularity_score(list(reversed(times))))

    def test_shannon_entropy(self) -> None:
        """Test entropy of uniform and empty distributions."""
        assert shannon_entropy([1.0, 1.0]) == pytest.approx(math.log(2))
        assert shannon_entropy([0.0, 0.0]) == 0.0

    def test_model_defaults_to_neutral(self) -> None:
        """Test unknown and single-visit pages score 0.5."""
        model = RegularityModel(
            [make_visit("v1", "single", datetime(2024, 1, 1, tzinfo=UTC))]
        )
        assert model.score("single") == NEUTRAL_REGULARITY
        assert model.score("unknown") == NEUTRAL_REGULARITY
