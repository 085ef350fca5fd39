"""Ranking engine: online re-ranker, relevance filter, feedback, orchestration."""

from history_ranker.ranker.cache import ClickClaim, DisplayedCandidateCache, DisplayedCandidates
from history_ranker.ranker.cancellation import CancellationToken
from history_ranker.ranker.constants import FEATURE_NAMES, RECORD_KEYS
from history_ranker.ranker.engine import HistoryRanker, dedupe_by_title_and_url
from history_ranker.ranker.errors import (
    DataUnavailableError,
    LoadCancelledError,
    RankingError,
    WeightPersistenceError,
)
from history_ranker.ranker.feedback import FeedbackRecorder
from history_ranker.ranker.metrics import RankerMetrics
from history_ranker.ranker.models import FeatureVector, ModelWeights, RankedPage
from history_ranker.ranker.online_model import OnlineRanker, sigmoid, two_tier_score
from history_ranker.ranker.relevance_filter import apply_relevance_filter
from history_ranker.ranker.snapshot import HistoryRecords, RankingSnapshot
from history_ranker.ranker.state_machine import (
    QueryLifecycle,
    QueryState,
    QueryStateTransitionError,
)


__all__ = [
    # Cache
    "ClickClaim",
    "DisplayedCandidateCache",
    "DisplayedCandidates",
    # Cancellation
    "CancellationToken",
    # Constants
    "FEATURE_NAMES",
    "RECORD_KEYS",
    # Engine
    "HistoryRanker",
    "dedupe_by_title_and_url",
    # Errors
    "DataUnavailableError",
    "LoadCancelledError",
    "RankingError",
    "WeightPersistenceError",
    # Feedback
    "FeedbackRecorder",
    # Metrics
    "RankerMetrics",
    # Models
    "FeatureVector",
    "ModelWeights",
    "RankedPage",
    # Online model
    "OnlineRanker",
    "sigmoid",
    "two_tier_score",
    # Filter
    "apply_relevance_filter",
    # Snapshot
    "HistoryRecords",
    "RankingSnapshot",
    # State machine
    "QueryLifecycle",
    "QueryState",
    "QueryStateTransitionError",
]
