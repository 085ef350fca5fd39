"""Ranking configuration schema and loader."""

from history_ranker.config.loader import ConfigValidationError, load_ranking_config
from history_ranker.config.schemas import (
    Bm25Config,
    FeaturePriors,
    FeedbackConfig,
    FilterConfig,
    FuzzyConfig,
    LearningConfig,
    NavigationConfig,
    RankingConfig,
    RecencyConfig,
    SubstringBonusConfig,
    TimeOfDayConfig,
)


__all__ = [
    "Bm25Config",
    "ConfigValidationError",
    "FeaturePriors",
    "FeedbackConfig",
    "FilterConfig",
    "FuzzyConfig",
    "LearningConfig",
    "NavigationConfig",
    "RankingConfig",
    "RecencyConfig",
    "SubstringBonusConfig",
    "TimeOfDayConfig",
    "load_ranking_config",
]
