"""Visit regularity from inter-visit interval dispersion and entropy."""

import math
import statistics
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime

from history_ranker.store.models import Visit


NEUTRAL_REGULARITY = 0.5


def shannon_entropy(values: Sequence[float]) -> float:
    """Entropy of ``values`` normalized to a distribution (0 if they sum to 0)."""
    total = sum(values)
    if total <= 0:
        return 0.0
    return -sum((v / total) * math.log(v / total) for v in values if v > 0)


def regularity_score(start_times: Iterable[datetime]) -> float:
    """Periodicity score for a set of visit start times.

    ``r = (1 / (1 + cv)) * (1 + H / ln(n))`` where ``cv`` is the population
    coefficient of variation of the intervals and ``H`` their entropy.

    Args:
        start_times: Visit start times, in any order.

    Returns:
        The score; 0.5 for fewer than two visits or a non-finite result.
    """
    ordered = sorted(start_times)
    n = len(ordered)
    if n < 2:
        return NEUTRAL_REGULARITY

    intervals = [
        (later - earlier).total_seconds()
        for earlier, later in zip(ordered, ordered[1:], strict=False)
    ]
    mean = statistics.fmean(intervals)
    cv = statistics.pstdev(intervals) / mean if mean > 0 else 0.0
    entropy = shannon_entropy(intervals)
    r = (1 / (1 + cv)) * (1 + entropy / math.log(n))
    return r if math.isfinite(r) else NEUTRAL_REGULARITY


class RegularityModel:
    """Regularity per page, computed once per data snapshot."""

    def __init__(self, visits: Iterable[Visit]) -> None:
        starts: dict[str, list[datetime]] = defaultdict(list)
        for visit in visits:
            starts[visit.page_id].append(visit.start_time)
        self._scores = {page_id: regularity_score(times) for page_id, times in starts.items()}

    def score(self, page_id: str) -> float:
        """Regularity of a page (0.5 for unknown pages)."""
        return self._scores.get(page_id, NEUTRAL_REGULARITY)
