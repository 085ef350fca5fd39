"""Multi-scale exponential recency with a dwell-time boost."""

import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from typing import NamedTuple

from history_ranker.config.schemas import RecencyConfig
from history_ranker.store.models import Visit


_LN2 = math.log(2)


class RecencyScore(NamedTuple):
    """Recency feature plus the number of future-dated visits ignored."""

    value: float
    future_visits: int


def dwell_factor(dwell_seconds: float, config: RecencyConfig) -> float:
    """Diminishing-returns boost in ``[1, 1 + dwell_max_boost)``."""
    if not math.isfinite(dwell_seconds) or dwell_seconds <= 0:
        return 1.0
    ratio = math.atan(dwell_seconds / config.dwell_scale_seconds) / (math.pi / 2)
    return 1 + ratio * config.dwell_max_boost


def decay(delta_seconds: float, half_life: float) -> float:
    """Exponential decay that halves every ``half_life`` seconds."""
    return math.exp(-_LN2 * delta_seconds / half_life)


class RecencyModel:
    """Per-page recency over the short, medium and long half-lives."""

    def __init__(self, visits: Iterable[Visit], config: RecencyConfig | None = None) -> None:
        self._config = config or RecencyConfig()
        self._by_page: dict[str, list[Visit]] = defaultdict(list)
        for visit in visits:
            self._by_page[visit.page_id].append(visit)

    def score(self, page_id: str, now: datetime) -> RecencyScore:
        """Compute the recency feature for a page.

        Visits dated after ``now`` are skipped and counted.

        Args:
            page_id: Page key.
            now: Reference time (timezone-aware).

        Returns:
            Combined decay, 0 for pages without (past) visits.
        """
        cfg = self._config
        short_term = medium_term = long_term = 0.0
        future = 0

        for visit in self._by_page.get(page_id, ()):
            delta = (now - visit.start_time).total_seconds()
            if delta < 0:
                future += 1
                continue
            boost = dwell_factor(visit.total_active_time, cfg)
            short_term += decay(delta, cfg.short_half_life) * boost
            medium_term += decay(delta, cfg.medium_half_life) * boost
            long_term += decay(delta, cfg.long_half_life) * boost

        value = (
            cfg.short_weight * short_term
            + cfg.medium_weight * medium_term
            + cfg.long_weight * long_term
        )
        if not math.isfinite(value):
            value = 0.0
        return RecencyScore(value=value, future_visits=future)
