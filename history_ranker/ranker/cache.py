"""Per-query cache of displayed candidates and their feature vectors."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from threading import Lock

import structlog

from history_ranker.ranker.models import FeatureVector
from history_ranker.ranker.state_machine import QueryLifecycle, QueryState


logger = structlog.get_logger()

_SHOWN_STATES = frozenset({QueryState.DISPLAYED, QueryState.IMPRESSED, QueryState.CLICKED})


@dataclass
class DisplayedCandidates:
    """Features of the results one query displayed.

    Attributes:
        lifecycle: The query's state machine.
        features: Feature vector per displayed page_id.
        token_count: Whitespace-separated tokens in the query.
    """

    lifecycle: QueryLifecycle
    features: dict[str, FeatureVector] = field(default_factory=dict)
    token_count: int = 1

    @property
    def sequence(self) -> int:
        """Query sequence number."""
        return self.lifecycle.sequence


@dataclass(frozen=True)
class ClickClaim:
    """Outcome of claiming the newest displayed set for a click.

    Attributes:
        current: The clicked page belongs to the newest displayed set.
        features: Features to train on, or None when the set already
            trained or is not current.
        token_count: Token count of the query that displayed the set.
    """

    current: bool
    features: dict[str, FeatureVector] | None = None
    token_count: int = 1


class DisplayedCandidateCache:
    """Tracks in-flight and displayed queries keyed by sequence number.

    Starting a query supersedes every older one and drops its cached
    features, so feedback can only ever train against the newest displayed
    result set. All state transitions go through this cache under one lock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: dict[int, DisplayedCandidates] = {}
        self._latest = 0
        self._log = logger.bind(component="ranker", subcomponent="candidate_cache")

    @property
    def latest_sequence(self) -> int:
        """Sequence number of the newest query started."""
        return self._latest

    def begin(self, sequence: int) -> tuple[QueryLifecycle, int]:
        """Register a new query and supersede older ones.

        Args:
            sequence: The new query's sequence number.

        Returns:
            The new lifecycle (already RETRIEVING) and how many older
            queries were superseded.
        """
        lifecycle = QueryLifecycle(sequence)
        lifecycle.transition(QueryState.RETRIEVING)
        with self._lock:
            superseded = 0
            for seq in [s for s in self._entries if s < sequence]:
                if self._entries.pop(seq).lifecycle.supersede():
                    superseded += 1
            if sequence > self._latest:
                self._latest = sequence
                self._entries[sequence] = DisplayedCandidates(lifecycle=lifecycle)
            else:
                lifecycle.supersede()
        if superseded:
            self._log.debug("queries_superseded", count=superseded, by=sequence)
        return lifecycle, superseded

    def advance(self, lifecycle: QueryLifecycle, to_state: QueryState) -> bool:
        """Move a query forward unless it was superseded.

        Returns:
            False if the query is no longer current.
        """
        with self._lock:
            if lifecycle.state is QueryState.SUPERSEDED:
                return False
            lifecycle.transition(to_state)
            return True

    def publish(
        self,
        lifecycle: QueryLifecycle,
        features: dict[str, FeatureVector],
        token_count: int = 1,
    ) -> bool:
        """Mark a query DISPLAYED and store its features.

        Returns:
            False (and nothing stored) if the query was superseded.
        """
        with self._lock:
            entry = self._entries.get(lifecycle.sequence)
            if (
                entry is None
                or lifecycle.sequence != self._latest
                or lifecycle.state is QueryState.SUPERSEDED
            ):
                return False
            lifecycle.transition(QueryState.DISPLAYED)
            entry.features = dict(features)
            entry.token_count = token_count
            return True

    def claim_for_click(self, page_id: str, page_ids: Iterable[str]) -> ClickClaim:
        """Consume the newest displayed result set for training.

        A click is current when the newest query has been displayed and
        showed ``page_id``. The first current click moves the query to
        CLICKED and receives the features, so each displayed set trains once.

        Args:
            page_id: Clicked page.
            page_ids: Displayed page ids reported by the caller.

        Returns:
            The claim; ``features`` holds the cached features of the known
            ``page_ids`` for the first click only.
        """
        with self._lock:
            entry = self._entries.get(self._latest)
            if (
                entry is None
                or entry.lifecycle.state not in _SHOWN_STATES
                or page_id not in entry.features
            ):
                return ClickClaim(current=False)
            if not entry.lifecycle.accepts_feedback:
                return ClickClaim(current=True, token_count=entry.token_count)
            entry.lifecycle.transition(QueryState.CLICKED)
            features = {pid: entry.features[pid] for pid in page_ids if pid in entry.features}
            return ClickClaim(current=True, features=features, token_count=entry.token_count)

    def mark_impressed(self) -> bool:
        """Record that the newest displayed results were shown.

        Returns:
            True if the query moved from DISPLAYED to IMPRESSED.
        """
        with self._lock:
            entry = self._entries.get(self._latest)
            if entry is None or entry.lifecycle.state is not QueryState.DISPLAYED:
                return False
            entry.lifecycle.transition(QueryState.IMPRESSED)
            return True

    def state_of(self, sequence: int) -> QueryState | None:
        """Current state of a cached query, or None once evicted."""
        with self._lock:
            entry = self._entries.get(sequence)
            return entry.lifecycle.state if entry else None

    def clear(self) -> None:
        """Supersede and drop every cached query."""
        with self._lock:
            for entry in self._entries.values():
                entry.lifecycle.supersede()
            self._entries.clear()
