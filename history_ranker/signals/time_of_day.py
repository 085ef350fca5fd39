"""Hour-of-day visit histograms."""

from collections.abc import Iterable
from datetime import datetime, tzinfo

from history_ranker.config.schemas import TimeOfDayConfig
from history_ranker.store.models import Visit


HOURS_PER_DAY = 24


def local_hour(moment: datetime, tz: tzinfo | None) -> int:
    """Hour of day in ``tz`` (system local time when None)."""
    return moment.astimezone(tz).hour


class TimeOfDayModel:
    """24-bucket histogram of visit start hours per page.

    ``probability`` is ``bucket[h] / total`` or, with smoothing alpha > 0,
    ``(bucket[h] + alpha) / (total + 24 * alpha)``. Pages with no visits
    yield 0 either way.
    """

    def __init__(
        self,
        visits: Iterable[Visit],
        config: TimeOfDayConfig | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._config = config or TimeOfDayConfig()
        self._tz = tz
        self._histograms: dict[str, list[int]] = {}
        for visit in visits:
            buckets = self._histograms.setdefault(visit.page_id, [0] * HOURS_PER_DAY)
            buckets[local_hour(visit.start_time, tz)] += 1

    @property
    def tz(self) -> tzinfo | None:
        """Timezone used for bucketing."""
        return self._tz

    def histogram(self, page_id: str) -> list[int]:
        """Copy of a page's 24 buckets (all zero when unknown)."""
        return list(self._histograms.get(page_id, [0] * HOURS_PER_DAY))

    def probability(self, page_id: str, hour: int) -> float:
        """Share of a page's visits that started in ``hour``.

        Args:
            page_id: Page key.
            hour: Hour of day, 0-23.

        Returns:
            A probability in [0, 1].
        """
        buckets = self._histograms.get(page_id)
        if buckets is None:
            return 0.0
        total = sum(buckets)
        if total == 0:
            return 0.0
        alpha = self._config.smoothing_alpha
        return (buckets[hour % HOURS_PER_DAY] + alpha) / (total + HOURS_PER_DAY * alpha)

    def probability_at(self, page_id: str, now: datetime) -> float:
        """``probability`` for the local hour of ``now``."""
        return self.probability(page_id, local_hour(now, self._tz))
