"""Sigmoid tail filter relative to the top score."""

from collections.abc import Callable, Sequence
from typing import TypeVar

from history_ranker.config.schemas import FilterConfig
from history_ranker.ranker.online_model import sigmoid


T = TypeVar("T")


def query_complexity(token_count: int) -> float:
    """``min(1, 0.3 + 0.2 * token_count)``."""
    return min(1.0, 0.3 + 0.2 * token_count)


def filter_midpoint(max_score: float, complexity: float, config: FilterConfig) -> float:
    """Sigmoid midpoint on the normalized (``score / max_score``) scale.

    Halved when the top score itself is weak.
    """
    midpoint = max(0.1, 0.25 - 0.05 * complexity)
    if max_score < config.low_max_score:
        midpoint *= 0.5
    return midpoint


def should_filter(
    count: int,
    max_score: float,
    token_count: int,
    config: FilterConfig,
) -> bool:
    """Whether the tail filter applies to a result list at all."""
    if not config.enabled or count <= 2 or max_score <= 0:
        return False
    return not (token_count == 1 and max_score > config.single_token_max_score)


def apply_relevance_filter(
    ranked: Sequence[T],
    score_of: Callable[[T], float],
    token_count: int,
    config: FilterConfig | None = None,
) -> list[T]:
    """Drop low-confidence results from the tail of a sorted list.

    A result is kept when ``sigmoid(steepness * (score / max - midpoint))``
    reaches ``min_keep_probability``, with ``steepness = 8 + 4 * complexity``.

    Args:
        ranked: Results sorted by descending score.
        score_of: Extracts a result's score.
        token_count: Number of whitespace-separated query tokens.
        config: Filter parameters.

    Returns:
        The kept results, in their original order.
    """
    config = config or FilterConfig()
    if not ranked:
        return []

    max_score = score_of(ranked[0])
    if not should_filter(len(ranked), max_score, token_count, config):
        return list(ranked)

    complexity = query_complexity(token_count)
    midpoint = filter_midpoint(max_score, complexity, config)
    steepness = 8 + 4 * complexity

    return [
        item
        for item in ranked
        if sigmoid(steepness * (score_of(item) / max_score - midpoint))
        >= config.min_keep_probability
    ]
