"""Weighted performance rating."""
from __future__ import annotations

from typing import TYPE_CHECKING

from ..config import RatingWeights
from ..models import Position
from .metrics import misses

if TYPE_CHECKING:
    from .aggregator import PlayerAggregate


def compute_rating(row: "PlayerAggregate", weights: RatingWeights) -> float:
    """
    Linear combination of counted categories.

    Goalkeeping terms only apply to players whose last recorded position is GK.
    """
    rating = 0.0
    rating += row.goals * weights.goal
    rating += misses(row) * weights.miss
    rating += row.assists * weights.assist
    rating += row.steals * weights.steal
    rating += row.blocks * weights.block
    rating += row.penalties * weights.earned_7m
    rating += row.good_defense * weights.good_id
    rating += row.turnovers * weights.turnover
    rating += row.yellow * weights.yellow
    rating += row.two_min * weights.two_min
    rating += row.red * weights.red
    rating += row.blue * weights.blue
    if row.position is Position.GK:
        rating += row.saves * weights.save
        rating += row.goals_against * weights.goal_conceded
    return rating
