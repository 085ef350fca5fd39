"""Personal score updates from clicks and impressions."""

from collections.abc import Iterable
from threading import Lock

import structlog

from history_ranker.config.schemas import FeedbackConfig
from history_ranker.ranker.metrics import RankerMetrics
from history_ranker.store.models import Page, clamp_unit
from history_ranker.store.protocols import HistoryRepository


logger = structlog.get_logger()


class FeedbackRecorder:
    """Owns the live personal scores of the loaded pages.

    Scores move towards 1 on clicks (``score += boost * (1 - score)``) and
    towards 0 on impressions (``score += decay * (0 - score)``); both stay
    clamped to [0, 1]. Every change is written through to the repository.
    A failed write is logged and counted; the in-memory score is kept.
    """

    def __init__(
        self,
        repository: HistoryRepository,
        config: FeedbackConfig | None = None,
        metrics: RankerMetrics | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or FeedbackConfig()
        self._metrics = metrics or RankerMetrics.get_instance()
        self._scores: dict[str, float] = {}
        self._lock = Lock()
        self._log = logger.bind(component="ranker", subcomponent="feedback")

    def reset(self, pages: Iterable[Page]) -> None:
        """Replace all scores with those of a freshly loaded page set."""
        scores = {page.page_id: page.personal_score for page in pages}
        with self._lock:
            self._scores = scores

    def personal_score(self, page_id: str) -> float | None:
        """Current personal score, or None for unknown pages."""
        return self._scores.get(page_id)

    def click_boost(self, rank: int) -> float:
        """Boost for a click at zero-based ``rank``; deeper clicks earn more."""
        cfg = self._config
        return cfg.deep_click_boost if rank >= cfg.deep_click_rank else cfg.click_boost

    def record_click(self, page_id: str, rank: int) -> float | None:
        """Raise a clicked page's personal score.

        Args:
            page_id: Clicked page.
            rank: Zero-based position of the page in the displayed list.

        Returns:
            The new score, or None if the page is unknown.
        """
        boost = self.click_boost(rank)
        with self._lock:
            old = self._scores.get(page_id)
            if old is None:
                self._log.debug("feedback_unknown_page", page_id=page_id, kind="click")
                return None
            new = clamp_unit(old + boost * (1 - old))
            self._scores[page_id] = new

        self._persist(page_id, new)
        self._log.debug(
            "personal_score_boosted",
            page_id=page_id,
            rank=rank,
            old_score=round(old, 4),
            new_score=round(new, 4),
        )
        return new

    def record_impressions(self, page_ids: Iterable[str]) -> dict[str, float]:
        """Decay the personal scores of shown-but-unclicked pages.

        Args:
            page_ids: Pages that were shown.

        Returns:
            New score per known page.
        """
        decay = self._config.impression_decay
        updated: dict[str, float] = {}
        with self._lock:
            for page_id in page_ids:
                old = self._scores.get(page_id)
                if old is None:
                    continue
                new = clamp_unit(old + decay * (0 - old))
                self._scores[page_id] = new
                updated[page_id] = new

        for page_id, score in updated.items():
            self._persist(page_id, score)
        return updated

    def _persist(self, page_id: str, score: float) -> None:
        try:
            self._repository.update_personal_score(page_id, score)
        except Exception:  # noqa: BLE001
            self._metrics.increment("score_update_failures_total")
            self._log.warning(
                "personal_score_persist_failed",
                page_id=page_id,
                exc_info=True,
            )
