"""Metrics collection for the ranking engine."""

from dataclasses import dataclass, field, fields
from threading import Lock
from typing import Any, ClassVar


@dataclass
class RankerMetrics:
    """Thread-safe counters for ranking and feedback operations.

    Attributes:
        queries_total: ``rank`` calls with a non-empty query.
        queries_empty: ``rank`` calls short-circuited by an empty query.
        queries_superseded: Queries superseded before display.
        candidates_total: Text candidates scored.
        filtered_out_total: Candidates removed by the tail filter.
        duplicates_removed_total: Results collapsed by title/URL dedupe.
        fuzzy_fallbacks_total: Queries answered by the fuzzy fallback.
        clicks_total: Clicks recorded.
        impressions_total: Impressions recorded.
        training_updates_total: Gradient steps applied.
        training_skipped_total: Clicks that could not train.
        training_rejected_total: Clicks whose training step would have
            moved the clicked page down.
        weight_saves_total: Successful weight saves.
        weight_save_failures_total: Failed weight saves.
        score_update_failures_total: Failed personal score writes.
        future_visits_skipped_total: Future-dated visits ignored by recency.
        data_load_failures_total: Failed data loads.
        last_rank_duration_ms: Duration of the latest rank call.
        last_load_duration_ms: Duration of the latest data load.
    """

    queries_total: int = 0
    queries_empty: int = 0
    queries_superseded: int = 0
    candidates_total: int = 0
    filtered_out_total: int = 0
    duplicates_removed_total: int = 0
    fuzzy_fallbacks_total: int = 0
    clicks_total: int = 0
    impressions_total: int = 0
    training_updates_total: int = 0
    training_skipped_total: int = 0
    training_rejected_total: int = 0
    weight_saves_total: int = 0
    weight_save_failures_total: int = 0
    score_update_failures_total: int = 0
    future_visits_skipped_total: int = 0
    data_load_failures_total: int = 0
    last_rank_duration_ms: float = 0.0
    last_load_duration_ms: float = 0.0

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    _instance: ClassVar["RankerMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RankerMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def increment(self, name: str, amount: int = 1) -> None:
        """Add to a counter.

        Args:
            name: Counter attribute name.
            amount: Amount to add.
        """
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def record_rank(
        self,
        candidates: int,
        filtered_out: int,
        duplicates: int,
        duration_ms: float,
    ) -> None:
        """Record the outcome of a displayed query."""
        with self._lock:
            self.queries_total += 1
            self.candidates_total += candidates
            self.filtered_out_total += filtered_out
            self.duplicates_removed_total += duplicates
            self.last_rank_duration_ms = duration_ms

    def record_load_duration(self, duration_ms: float) -> None:
        """Record how long a data load took."""
        with self._lock:
            self.last_load_duration_ms = duration_ms

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric values.
        """
        with self._lock:
            return {
                f.name: getattr(self, f.name)
                for f in fields(self)
                if not f.name.startswith("_")
            }
