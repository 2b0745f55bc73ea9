"""Ratio and composite helpers shared by the aggregator and the projector."""
from __future__ import annotations

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .aggregator import PlayerAggregate, ZoneBreakdown

Number = Union[int, float]


def safe_ratio(numerator: Number, denominator: Number) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def shot_percentage(row: "PlayerAggregate") -> float:
    return safe_ratio(row.goals, row.total_shots)


def save_percentage(row: "PlayerAggregate") -> float:
    return safe_ratio(row.saves, row.saves + row.goals_against)


def zone_percentage(bucket: "ZoneBreakdown") -> float:
    return safe_ratio(bucket.goals, bucket.total)


def positive_actions(row: "PlayerAggregate") -> int:
    return row.steals + row.assists + row.blocks + row.penalties + row.good_defense


def sanctions_total(row: "PlayerAggregate") -> int:
    # Blue cards are reported separately and do not count here.
    return row.yellow + row.two_min + row.red


def average_rating(row: "PlayerAggregate") -> float:
    return safe_ratio(row.total_rating, row.matches_played)


def misses(row: "PlayerAggregate") -> int:
    return row.total_shots - row.goals
