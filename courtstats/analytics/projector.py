"""Sorting, role filtering and tabular views over aggregated player rows."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Union

import pandas as pd

from ..models import Position
from .aggregator import PlayerAggregate
from .metrics import (
    average_rating,
    positive_actions,
    sanctions_total,
    save_percentage,
    shot_percentage,
    zone_percentage,
)

Direction = Literal["asc", "desc"]
Number = Union[int, float]


class StatsView(str, Enum):
    GENERAL = "GENERAL"
    SHOOTING = "SHOOTING"
    GOALKEEPERS = "GOALKEEPERS"
    POSITIVE = "POSITIVE"
    TURNOVERS = "TURNOVERS"


def _counter(name: str) -> Callable[[PlayerAggregate], Number]:
    return lambda row: getattr(row, name)


_RAW_COUNTERS = (
    "number",
    "matches_played",
    "playing_time",
    "goals",
    "total_shots",
    "assists",
    "steals",
    "blocks",
    "penalties",
    "good_defense",
    "saves",
    "goals_against",
    "turnovers",
    "turnover_pass",
    "turnover_reception",
    "turnover_steps",
    "turnover_double",
    "turnover_line",
    "turnover_offensive_foul",
    "yellow",
    "two_min",
    "red",
    "blue",
)

SORT_KEYS: Mapping[str, Callable[[PlayerAggregate], Number]] = {
    **{name: _counter(name) for name in _RAW_COUNTERS},
    "percentage": shot_percentage,
    "save_percentage": save_percentage,
    "positive_actions": positive_actions,
    "sanctions": sanctions_total,
    "rating": average_rating,
}

VIEW_COLUMNS: Mapping[StatsView, Sequence[str]] = {
    StatsView.GENERAL: ("number", "name", "matches_played", "goals", "total_shots", "percentage", "rating"),
    StatsView.SHOOTING: (
        "number",
        "name",
        "matches_played",
        "six_m",
        "nine_m",
        "wing",
        "seven_m",
        "fastbreak",
    ),
    StatsView.GOALKEEPERS: ("number", "name", "matches_played", "saves", "goals_against", "save_percentage"),
    StatsView.POSITIVE: (
        "number",
        "name",
        "matches_played",
        "assists",
        "steals",
        "blocks",
        "penalties",
        "good_defense",
        "positive_actions",
    ),
    StatsView.TURNOVERS: (
        "number",
        "name",
        "matches_played",
        "turnovers",
        "turnover_pass",
        "turnover_reception",
        "turnover_steps",
        "turnover_double",
        "turnover_line",
        "turnover_offensive_foul",
    ),
}


@dataclass(frozen=True)
class SortState:
    """
    Current sort column and direction of a stats table.
    """

    key: str = "rating"
    direction: Direction = "desc"

    def toggle(self, key: str) -> "SortState":
        """
        Selecting the active key flips its direction; a new key starts descending.
        """
        if key == self.key and self.direction == "desc":
            return SortState(key=key, direction="asc")
        return SortState(key=key, direction="desc")


def _resolve_view(view: Union[StatsView, str]) -> StatsView:
    if isinstance(view, StatsView):
        return view
    try:
        return StatsView[str(view).strip().upper()]
    except KeyError as exc:
        raise ValueError(f"Unknown stats view '{view}'") from exc


def filter_view(rows: Iterable[PlayerAggregate], view: Union[StatsView, str]) -> List[PlayerAggregate]:
    """
    Role-scoped subset: goalkeepers only for the goalkeeping view, everyone but staff otherwise.
    """
    resolved = _resolve_view(view)
    if resolved is StatsView.GOALKEEPERS:
        return [row for row in rows if row.position is Position.GK]
    return [row for row in rows if row.position.is_competing]


def sort_value(row: PlayerAggregate, key: str) -> Number:
    try:
        resolver = SORT_KEYS[key]
    except KeyError as exc:
        raise ValueError(f"Unsupported sort key '{key}'") from exc
    return resolver(row)


def project(
    rows: Iterable[PlayerAggregate],
    sort_key: str = "rating",
    direction: Direction = "desc",
    view: Union[StatsView, str] = StatsView.GENERAL,
) -> List[PlayerAggregate]:
    """
    Filter ``rows`` for ``view`` and order them by ``sort_key``.

    Rows that tie on the key keep their incoming order.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unsupported sort key '{sort_key}'")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort direction '{direction}'")
    subset = filter_view(rows, view)
    return sorted(subset, key=SORT_KEYS[sort_key], reverse=direction == "desc")


def _column_value(row: PlayerAggregate, column: str) -> object:
    if column in SORT_KEYS:
        return sort_value(row, column)
    if column in ("six_m", "nine_m", "wing", "seven_m", "fastbreak"):
        bucket = row.bucket(column)
        return f"{bucket.goals}/{bucket.total} ({zone_percentage(bucket):.0%})"
    return getattr(row, column)


def view_frame(
    rows: Iterable[PlayerAggregate],
    view: Union[StatsView, str] = StatsView.GENERAL,
    sort_state: Optional[SortState] = None,
) -> pd.DataFrame:
    """
    Project rows for ``view`` into a DataFrame holding that view's columns.
    """
    resolved = _resolve_view(view)
    state = sort_state or SortState()
    ordered = project(rows, state.key, state.direction, resolved)
    columns = list(VIEW_COLUMNS[resolved])
    records: List[Dict[str, object]] = [
        {column: _column_value(row, column) for column in columns} for row in ordered
    ]
    return pd.DataFrame.from_records(records, columns=columns)
