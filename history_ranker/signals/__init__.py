"""Contextual ranking signals: navigation, recency, time of day, session, regularity."""

from history_ranker.signals.navigation import NavigationModel
from history_ranker.signals.recency import RecencyModel, RecencyScore, decay, dwell_factor
from history_ranker.signals.regularity import (
    NEUTRAL_REGULARITY,
    RegularityModel,
    regularity_score,
    shannon_entropy,
)
from history_ranker.signals.session import EMPTY_CONTEXT, SessionContext, SessionContextModel
from history_ranker.signals.time_of_day import HOURS_PER_DAY, TimeOfDayModel, local_hour


__all__ = [
    "EMPTY_CONTEXT",
    "HOURS_PER_DAY",
    "NEUTRAL_REGULARITY",
    "NavigationModel",
    "RecencyModel",
    "RecencyScore",
    "RegularityModel",
    "SessionContext",
    "SessionContextModel",
    "TimeOfDayModel",
    "decay",
    "dwell_factor",
    "local_hour",
    "regularity_score",
    "shannon_entropy",
]
