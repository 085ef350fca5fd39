"""Markov transition model over page-to-page edges."""

from collections import defaultdict
from collections.abc import Iterable

from history_ranker.config.schemas import NavigationConfig
from history_ranker.store.models import Edge


class NavigationModel:
    """Answers "how likely is the user to go from page A to page B next".

    Edge counts are summed per (from, to) pair. Estimators:

    - ``frequency``: ``count(from, to) / sum(count(from, *))``.
    - ``beta``: each observed edge is a ``Beta(alpha + count, beta)``
      posterior and its mean is returned, so a single traversal is not
      treated as certain. Pairs without an edge yield 0.
    - ``beta_binomial``: posterior mean of
      ``Beta(alpha + count, beta + total - count)`` over the whole row, which
      keeps sparse rows away from exact 0 and 1.

    Pages without outgoing edges always yield 0.
    """

    def __init__(self, edges: Iterable[Edge], config: NavigationConfig | None = None) -> None:
        self._config = config or NavigationConfig()
        self._table: dict[str, dict[str, int]] = defaultdict(dict)
        self._totals: dict[str, int] = defaultdict(int)
        for edge in edges:
            row = self._table[edge.from_page_id]
            row[edge.to_page_id] = row.get(edge.to_page_id, 0) + edge.count
            self._totals[edge.from_page_id] += edge.count

    def outgoing_total(self, from_page_id: str) -> int:
        """Sum of traversal counts leaving a page."""
        return self._totals.get(from_page_id, 0)

    def transition_probability(self, from_page_id: str | None, to_page_id: str) -> float:
        """Probability of navigating from one page to another.

        Args:
            from_page_id: Current page, or None when unknown.
            to_page_id: Candidate next page.

        Returns:
            A probability in [0, 1].
        """
        if from_page_id is None or from_page_id not in self._table:
            return 0.0
        total = self._totals[from_page_id]
        count = self._table[from_page_id].get(to_page_id, 0)

        if self._config.smoothing == "beta":
            if count <= 0:
                return 0.0
            alpha = self._config.prior_alpha + count
            return alpha / (alpha + self._config.prior_beta)

        if self._config.smoothing == "beta_binomial":
            alpha = self._config.prior_alpha + count
            beta = self._config.prior_beta + (total - count)
            return alpha / (alpha + beta)

        if total <= 0:
            return 0.0
        return count / total
