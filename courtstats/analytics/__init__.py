"""Season aggregation and table projection for recorded matches."""

from .aggregator import (
    AggregationResult,
    PlayerAggregate,
    ZoneBreakdown,
    aggregate,
    match_outcome,
    order_summaries,
)
from .identity import IdentityResolver, NumberNameResolver, normalise_name
from .metrics import (
    average_rating,
    positive_actions,
    safe_ratio,
    sanctions_total,
    save_percentage,
    shot_percentage,
    zone_percentage,
)
from .projector import (
    SORT_KEYS,
    VIEW_COLUMNS,
    SortState,
    StatsView,
    filter_view,
    project,
    view_frame,
)
from .rating import compute_rating

__all__ = [
    "AggregationResult",
    "PlayerAggregate",
    "ZoneBreakdown",
    "aggregate",
    "match_outcome",
    "order_summaries",
    "IdentityResolver",
    "NumberNameResolver",
    "normalise_name",
    "average_rating",
    "positive_actions",
    "safe_ratio",
    "sanctions_total",
    "save_percentage",
    "shot_percentage",
    "zone_percentage",
    "SORT_KEYS",
    "VIEW_COLUMNS",
    "SortState",
    "StatsView",
    "filter_view",
    "project",
    "view_frame",
    "compute_rating",
]
