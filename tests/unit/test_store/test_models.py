"""Unit tests for history record models."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from history_ranker.store import Edge, Page, Session, Visit, clamp_unit
from tests.helpers.history import make_page
from tests.helpers.time import FIXED_NOW


class TestClampUnit:
    """Tests for clamp_unit."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(-0.5, 0.0), (0.0, 0.0), (0.3, 0.3), (1.0, 1.0), (7.0, 1.0), (float("nan"), 0.0)],
    )
    def test_clamps(self, value: float, expected: float) -> None:
        """Test values are clamped into [0, 1]."""
        assert clamp_unit(value) == expected


class TestPage:
    """Tests for Page model."""

    def test_create_minimal(self) -> None:
        """Test creating a page with required fields only."""
        page = Page(
            page_id="p1",
            url="https://example.com",
            first_visit=FIXED_NOW,
            last_visit=FIXED_NOW,
        )
        assert page.title == ""
        assert page.visit_count == 0
        assert page.personal_score == 0.5

    def test_personal_score_clamped(self) -> None:
        """Test out-of-range personal scores are clamped."""
        assert make_page("p", personal_score=1.7).personal_score == 1.0
        assert make_page("p", personal_score=-0.2).personal_score == 0.0

    def test_with_personal_score(self) -> None:
        """Test copying with a new score leaves the original unchanged."""
        page = make_page("p")
        updated = page.with_personal_score(2.0)
        assert updated.personal_score == 1.0
        assert page.personal_score == 0.5
        assert updated.url == page.url

    def test_naive_timestamps_become_utc(self) -> None:
        """Test naive datetimes are treated as UTC."""
        page = Page(
            page_id="p",
            url="https://example.com",
            first_visit=datetime(2024, 1, 1),
            last_visit=datetime(2024, 1, 2),
        )
        assert page.first_visit.tzinfo is UTC

    def test_visit_order_enforced(self) -> None:
        """Test last_visit may not precede first_visit."""
        with pytest.raises(ValidationError, match="last_visit"):
            Page(
                page_id="p",
                url="https://example.com",
                first_visit=FIXED_NOW,
                last_visit=FIXED_NOW - timedelta(days=1),
            )

    def test_rejects_empty_id_and_negative_counts(self) -> None:
        """Test field constraints are enforced at construction."""
        with pytest.raises(ValidationError):
            Page(page_id="", url="u", first_visit=FIXED_NOW, last_visit=FIXED_NOW)
        with pytest.raises(ValidationError):
            Page(
                page_id="p",
                url="u",
                first_visit=FIXED_NOW,
                last_visit=FIXED_NOW,
                visit_count=-1,
            )

    def test_extra_fields_forbidden(self) -> None:
        """Test unknown fields are rejected."""
        with pytest.raises(ValidationError):
            Page(
                page_id="p",
                url="u",
                first_visit=FIXED_NOW,
                last_visit=FIXED_NOW,
                favicon="x",  # type: ignore[call-arg]
            )

    def test_frozen(self) -> None:
        """Test pages are immutable."""
        page = make_page("p")
        with pytest.raises(ValidationError):
            page.personal_score = 0.9  # type: ignore[misc]


class TestVisit:
    """Tests for Visit model."""

    def test_end_before_start_rejected(self) -> None:
        """Test end_time may not precede start_time."""
        with pytest.raises(ValidationError, match="end_time"):
            Visit(
                visit_id="v",
                page_id="p",
                session_id="s",
                start_time=FIXED_NOW,
                end_time=FIXED_NOW - timedelta(seconds=1),
            )

    def test_defaults(self) -> None:
        """Test optional fields default sensibly."""
        visit = Visit(visit_id="v", page_id="p", session_id="s", start_time=FIXED_NOW)
        assert visit.end_time is None
        assert visit.from_page_id is None
        assert visit.is_back_navigation is False
        assert visit.total_active_time == 0.0


class TestEdgeAndSession:
    """Tests for Edge and Session models."""

    def test_edge_traversal_order(self) -> None:
        """Test last_traversal may not precede first_traversal."""
        with pytest.raises(ValidationError):
            Edge(
                from_page_id="a",
                to_page_id="b",
                session_id="s",
                first_traversal=FIXED_NOW,
                last_traversal=FIXED_NOW - timedelta(hours=1),
            )

    def test_edge_count_non_negative(self) -> None:
        """Test negative traversal counts are rejected."""
        with pytest.raises(ValidationError):
            Edge(
                from_page_id="a",
                to_page_id="b",
                session_id="s",
                count=-1,
                first_traversal=FIXED_NOW,
                last_traversal=FIXED_NOW,
            )

    def test_session_activity_order(self) -> None:
        """Test last activity may not precede the session start."""
        with pytest.raises(ValidationError):
            Session(
                session_id="s",
                start_time=FIXED_NOW,
                last_activity_at=FIXED_NOW - timedelta(minutes=1),
            )
