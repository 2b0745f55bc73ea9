"""
Courtstats season statistics package.
"""

from .config import RatingWeights, StatsSettings, load_rating_weights
from .exceptions import CourtStatsError, MatchNotFoundError, RatingConfigError
from .models import MatchRecord, MatchSummary, Player, Position
from .store import MatchStore
from .analytics import AggregationResult, PlayerAggregate, aggregate, project

__all__ = [
    "RatingWeights",
    "StatsSettings",
    "load_rating_weights",
    "CourtStatsError",
    "MatchNotFoundError",
    "RatingConfigError",
    "MatchRecord",
    "MatchSummary",
    "Player",
    "Position",
    "MatchStore",
    "AggregationResult",
    "PlayerAggregate",
    "aggregate",
    "project",
]
