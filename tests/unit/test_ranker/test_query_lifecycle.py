"""Unit tests for the query lifecycle state machine and candidate cache."""

import pytest

from history_ranker.ranker import (
    DisplayedCandidateCache,
    FeatureVector,
    QueryLifecycle,
    QueryState,
    QueryStateTransitionError,
)


def _display(cache: DisplayedCandidateCache, sequence: int, page_ids: list[str]) -> QueryLifecycle:
    lifecycle, _ = cache.begin(sequence)
    assert cache.advance(lifecycle, QueryState.SCORING)
    assert cache.advance(lifecycle, QueryState.FILTERING)
    features = {pid: FeatureVector(text_match=float(i + 1)) for i, pid in enumerate(page_ids)}
    assert cache.publish(lifecycle, features)
    return lifecycle


class TestQueryLifecycle:
    """Tests for QueryLifecycle transitions."""

    def test_initial_state(self) -> None:
        """Test a lifecycle starts IDLE."""
        lifecycle = QueryLifecycle(1)
        assert lifecycle.state == QueryState.IDLE
        assert lifecycle.sequence == 1
        assert not lifecycle.accepts_feedback

    def test_happy_path(self) -> None:
        """Test the full ranking path up to a click."""
        lifecycle = QueryLifecycle(1)
        for state in (
            QueryState.RETRIEVING,
            QueryState.SCORING,
            QueryState.FILTERING,
            QueryState.DISPLAYED,
        ):
            lifecycle.transition(state)
        assert lifecycle.accepts_feedback
        lifecycle.transition(QueryState.IMPRESSED)
        assert lifecycle.accepts_feedback
        lifecycle.transition(QueryState.CLICKED)
        assert not lifecycle.accepts_feedback

    def test_invalid_transition_raises(self) -> None:
        """Test skipping stages raises with details."""
        lifecycle = QueryLifecycle(7)
        with pytest.raises(QueryStateTransitionError) as exc_info:
            lifecycle.transition(QueryState.DISPLAYED)
        assert exc_info.value.sequence == 7
        assert exc_info.value.from_state == QueryState.IDLE
        assert exc_info.value.to_state == QueryState.DISPLAYED
        assert lifecycle.state == QueryState.IDLE

    def test_terminal_states(self) -> None:
        """Test CLICKED and SUPERSEDED allow no transitions."""
        assert QueryLifecycle.VALID_TRANSITIONS[QueryState.CLICKED] == set()
        assert QueryLifecycle.VALID_TRANSITIONS[QueryState.SUPERSEDED] == set()

    def test_supersede(self) -> None:
        """Test supersede succeeds once from a non-terminal state."""
        lifecycle = QueryLifecycle(1)
        lifecycle.transition(QueryState.RETRIEVING)
        assert lifecycle.supersede()
        assert lifecycle.state == QueryState.SUPERSEDED
        assert not lifecycle.supersede()

    def test_clicked_cannot_be_superseded(self) -> None:
        """Test a clicked query keeps its state."""
        lifecycle = QueryLifecycle(1)
        for state in (
            QueryState.RETRIEVING,
            QueryState.SCORING,
            QueryState.FILTERING,
            QueryState.DISPLAYED,
            QueryState.CLICKED,
        ):
            lifecycle.transition(state)
        assert not lifecycle.supersede()
        assert lifecycle.state == QueryState.CLICKED


class TestDisplayedCandidateCache:
    """Tests for DisplayedCandidateCache."""

    def test_begin_starts_retrieving(self) -> None:
        """Test a new query is registered in RETRIEVING."""
        cache = DisplayedCandidateCache()
        lifecycle, superseded = cache.begin(1)
        assert lifecycle.state == QueryState.RETRIEVING
        assert superseded == 0
        assert cache.latest_sequence == 1
        assert cache.state_of(1) == QueryState.RETRIEVING

    def test_publish_marks_displayed(self) -> None:
        """Test publishing stores the displayed state."""
        cache = DisplayedCandidateCache()
        _display(cache, 1, ["a", "b"])
        assert cache.state_of(1) == QueryState.DISPLAYED

    def test_newer_query_supersedes_and_evicts(self) -> None:
        """Test starting a query supersedes and drops older ones."""
        cache = DisplayedCandidateCache()
        old = _display(cache, 1, ["a"])
        _, superseded = cache.begin(2)
        assert superseded == 1
        assert old.state == QueryState.SUPERSEDED
        assert cache.state_of(1) is None

    def test_superseded_query_cannot_advance(self) -> None:
        """Test an in-flight query stops once superseded."""
        cache = DisplayedCandidateCache()
        first, _ = cache.begin(1)
        cache.begin(2)
        assert not cache.advance(first, QueryState.SCORING)
        assert not cache.publish(first, {})

    def test_stale_sequence_superseded_immediately(self) -> None:
        """Test a query older than the newest one never displays."""
        cache = DisplayedCandidateCache()
        cache.begin(2)
        stale, _ = cache.begin(1)
        assert stale.state == QueryState.SUPERSEDED
        assert cache.latest_sequence == 2

    def test_claim_for_click(self) -> None:
        """Test a displayed set is claimed once with the requested features."""
        cache = DisplayedCandidateCache()
        _display(cache, 1, ["a", "b"])
        claim = cache.claim_for_click("a", ["a", "b", "unknown"])
        assert claim.current
        assert claim.features is not None
        assert set(claim.features) == {"a", "b"}
        assert claim.features["b"].text_match == 2.0
        assert cache.state_of(1) == QueryState.CLICKED

        again = cache.claim_for_click("a", ["a"])
        assert again.current
        assert again.features is None

    def test_claim_keeps_token_count(self) -> None:
        """Test the claim reports the query's token count."""
        cache = DisplayedCandidateCache()
        lifecycle, _ = cache.begin(1)
        cache.advance(lifecycle, QueryState.SCORING)
        cache.advance(lifecycle, QueryState.FILTERING)
        cache.publish(lifecycle, {"a": FeatureVector(text_match=1.0)}, token_count=3)
        assert cache.claim_for_click("a", ["a"]).token_count == 3

    def test_claim_after_impressions(self) -> None:
        """Test impressed results still accept a click."""
        cache = DisplayedCandidateCache()
        _display(cache, 1, ["a"])
        assert cache.mark_impressed()
        assert cache.state_of(1) == QueryState.IMPRESSED
        assert not cache.mark_impressed()
        assert cache.claim_for_click("a", ["a"]).features is not None

    def test_claim_without_display(self) -> None:
        """Test nothing can be claimed before a query is displayed."""
        cache = DisplayedCandidateCache()
        assert not cache.claim_for_click("a", ["a"]).current
        cache.begin(1)
        assert not cache.claim_for_click("a", ["a"]).current

    def test_claim_for_page_not_in_newest_set(self) -> None:
        """Test a click on a page only an older query showed is not current."""
        cache = DisplayedCandidateCache()
        _display(cache, 1, ["a"])
        _display(cache, 2, ["b"])
        claim = cache.claim_for_click("a", ["a"])
        assert not claim.current
        assert claim.features is None
        assert cache.state_of(2) == QueryState.DISPLAYED

    def test_clear(self) -> None:
        """Test clear supersedes and drops everything."""
        cache = DisplayedCandidateCache()
        lifecycle = _display(cache, 1, ["a"])
        cache.clear()
        assert lifecycle.state == QueryState.SUPERSEDED
        assert cache.state_of(1) is None
        assert not cache.claim_for_click("a", ["a"]).current
