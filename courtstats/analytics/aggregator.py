"""Fold match records into per-player season aggregates."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Type, Union

from ..config import RatingWeights
from ..exceptions import RatingConfigError
from ..models import (
    MatchRecord,
    MatchSummary,
    OpponentShotEvent,
    Player,
    Position,
    PositiveActionEvent,
    PositiveActionType,
    SanctionEvent,
    SanctionType,
    ShotEvent,
    ShotOutcome,
    ShotZone,
    TurnoverEvent,
    TurnoverType,
)
from .identity import DEFAULT_RESOLVER, IdentityResolver
from .metrics import average_rating, safe_ratio, save_percentage, shot_percentage
from .rating import compute_rating

LOGGER = logging.getLogger(__name__)

FoldOrder = Literal["chronological", "as_given"]
MatchLoader = Callable[[str], Union[MatchRecord, Mapping[str, Any], None]]

ZONE_BUCKETS: Mapping[ShotZone, str] = {
    ShotZone.SIX_M_L: "six_m",
    ShotZone.SIX_M_C: "six_m",
    ShotZone.SIX_M_R: "six_m",
    ShotZone.NINE_M_L: "nine_m",
    ShotZone.NINE_M_C: "nine_m",
    ShotZone.NINE_M_R: "nine_m",
    ShotZone.WING_L: "wing",
    ShotZone.WING_R: "wing",
    ShotZone.SEVEN_M: "seven_m",
    ShotZone.FASTBREAK: "fastbreak",
}
BUCKET_NAMES: Tuple[str, ...] = ("six_m", "nine_m", "wing", "seven_m", "fastbreak")

TURNOVER_COUNTERS: Mapping[TurnoverType, str] = {
    TurnoverType.PASS: "turnover_pass",
    TurnoverType.RECEPTION: "turnover_reception",
    TurnoverType.STEPS: "turnover_steps",
    TurnoverType.DOUBLE: "turnover_double",
    TurnoverType.LINE: "turnover_line",
    TurnoverType.OFFENSIVE_FOUL: "turnover_offensive_foul",
}

POSITIVE_ACTION_COUNTERS: Mapping[PositiveActionType, str] = {
    PositiveActionType.ASSIST: "assists",
    PositiveActionType.OFFENSIVE_BLOCK: "assists",
    PositiveActionType.STEAL: "steals",
    PositiveActionType.BLOCK_SHOT: "blocks",
    PositiveActionType.FORCE_PENALTY: "penalties",
    PositiveActionType.GOOD_DEFENSE: "good_defense",
}

SANCTION_COUNTERS: Mapping[SanctionType, str] = {
    SanctionType.YELLOW: "yellow",
    SanctionType.TWO_MIN: "two_min",
    SanctionType.RED: "red",
    SanctionType.BLUE: "blue",
}


def _check_exhaustive(enum_cls: Type[Enum], table: Mapping[Any, str]) -> None:
    missing = [member.name for member in enum_cls if member not in table]
    if missing:
        raise RuntimeError(f"No counter mapped for {enum_cls.__name__}: {', '.join(missing)}")


for _enum_cls, _table in (
    (ShotZone, ZONE_BUCKETS),
    (TurnoverType, TURNOVER_COUNTERS),
    (PositiveActionType, POSITIVE_ACTION_COUNTERS),
    (SanctionType, SANCTION_COUNTERS),
):
    _check_exhaustive(_enum_cls, _table)


@dataclass
class ZoneBreakdown:
    goals: int = 0
    total: int = 0

    def record(self, is_goal: bool) -> None:
        self.total += 1
        if is_goal:
            self.goals += 1


@dataclass
class PlayerAggregate:
    key: str
    player_id: str
    name: str
    number: int
    position: Position
    matches_played: int = 0
    playing_time: float = 0.0
    goals: int = 0
    total_shots: int = 0
    six_m: ZoneBreakdown = field(default_factory=ZoneBreakdown)
    nine_m: ZoneBreakdown = field(default_factory=ZoneBreakdown)
    wing: ZoneBreakdown = field(default_factory=ZoneBreakdown)
    seven_m: ZoneBreakdown = field(default_factory=ZoneBreakdown)
    fastbreak: ZoneBreakdown = field(default_factory=ZoneBreakdown)
    assists: int = 0
    steals: int = 0
    blocks: int = 0
    penalties: int = 0
    good_defense: int = 0
    turnovers: int = 0
    turnover_pass: int = 0
    turnover_reception: int = 0
    turnover_steps: int = 0
    turnover_double: int = 0
    turnover_line: int = 0
    turnover_offensive_foul: int = 0
    yellow: int = 0
    two_min: int = 0
    red: int = 0
    blue: int = 0
    saves: int = 0
    goals_against: int = 0
    total_rating: float = 0.0

    @property
    def shot_percentage(self) -> float:
        return shot_percentage(self)

    @property
    def save_percentage(self) -> float:
        return save_percentage(self)

    @property
    def average_rating(self) -> float:
        return average_rating(self)

    def bucket(self, name: str) -> ZoneBreakdown:
        if name not in BUCKET_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def increment(self, counter: str) -> None:
        setattr(self, counter, getattr(self, counter) + 1)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["position"] = self.position.value
        return payload


@dataclass(frozen=True)
class AggregationResult:
    rows: Tuple[PlayerAggregate, ...]
    included_matches: Tuple[MatchSummary, ...]
    wins: int = 0
    draws: int = 0
    losses: int = 0

    @property
    def matches(self) -> int:
        return len(self.included_matches)

    @property
    def win_rate(self) -> float:
        return safe_ratio(self.wins, self.matches)

    @property
    def goals_per_match(self) -> float:
        return safe_ratio(sum(row.goals for row in self.rows), self.matches)

    @property
    def saves_per_match(self) -> float:
        saves = sum(row.saves for row in self.rows if row.position is Position.GK)
        return safe_ratio(saves, self.matches)


def _require_weights(weights: Any) -> RatingWeights:
    if isinstance(weights, RatingWeights):
        return weights
    if isinstance(weights, Mapping):
        return RatingWeights.from_mapping(weights)
    raise RatingConfigError("A rating weight table is required to aggregate match statistics")


def _coerce_summaries(summaries: Iterable[Union[MatchSummary, Mapping[str, Any]]]) -> List[MatchSummary]:
    coerced: List[MatchSummary] = []
    for item in summaries:
        if isinstance(item, MatchSummary):
            coerced.append(item)
        elif isinstance(item, Mapping):
            summary = MatchSummary.from_dict(item)
            if summary is not None:
                coerced.append(summary)
    return coerced


def order_summaries(summaries: Sequence[MatchSummary], fold_order: FoldOrder) -> List[MatchSummary]:
    """
    Order summaries for folding.

    Chronological order puts undated summaries after every dated one; ties and
    undated summaries keep their input order.
    """
    if fold_order == "as_given":
        return list(summaries)
    if fold_order == "chronological":
        return sorted(summaries, key=lambda s: (s.parsed_date is None, s.parsed_date or datetime.min))
    raise ValueError(f"Unsupported fold order '{fold_order}'")


def _coerce_record(loaded: Any, match_id: str) -> Optional[MatchRecord]:
    if loaded is None or isinstance(loaded, MatchRecord):
        return loaded
    if isinstance(loaded, Mapping):
        try:
            return MatchRecord.from_dict(loaded)
        except (ValueError, TypeError) as exc:
            LOGGER.warning("Match %s could not be parsed: %s", match_id, exc)
            return None
    LOGGER.warning("Match loader returned %s for match %s", type(loaded).__name__, match_id)
    return None


def match_outcome(record: MatchRecord, team_name: Optional[str]) -> str:
    """
    Return ``"win"``, ``"draw"`` or ``"loss"`` from our team's point of view.
    """
    home = record.is_home(team_name)
    ours = record.home_score if home else record.away_score
    theirs = record.away_score if home else record.home_score
    if ours > theirs:
        return "win"
    if ours == theirs:
        return "draw"
    return "loss"


def _entry_for(player: Player, accumulator: Dict[str, PlayerAggregate], resolver: IdentityResolver) -> PlayerAggregate:
    key = resolver.key_for(player)
    entry = accumulator.get(key)
    if entry is None:
        entry = PlayerAggregate(
            key=key,
            player_id=player.id,
            name=player.name,
            number=player.number,
            position=player.position,
        )
        accumulator[key] = entry
    entry.name = player.name
    entry.number = player.number
    entry.position = player.position
    return entry


def _fold_shot(entry: PlayerAggregate, event: ShotEvent) -> None:
    is_goal = event.outcome is ShotOutcome.GOAL
    entry.total_shots += 1
    if is_goal:
        entry.goals += 1
    if event.zone is not None:
        entry.bucket(ZONE_BUCKETS[event.zone]).record(is_goal)


def _fold_opponent_shot(entry: PlayerAggregate, event: OpponentShotEvent) -> None:
    if event.outcome is ShotOutcome.SAVE:
        entry.saves += 1
    elif event.outcome is ShotOutcome.GOAL:
        entry.goals_against += 1


def _fold_turnover(entry: PlayerAggregate, event: TurnoverEvent) -> None:
    entry.turnovers += 1
    if event.turnover_type is not None:
        entry.increment(TURNOVER_COUNTERS[event.turnover_type])


def _fold_match(
    record: MatchRecord,
    accumulator: Dict[str, PlayerAggregate],
    resolver: IdentityResolver,
    period: Optional[int],
) -> int:
    roster = record.roster_index()
    appeared = set()
    for player in record.players:
        entry = _entry_for(player, accumulator, resolver)
        if entry.key in appeared:
            continue
        appeared.add(entry.key)
        entry.matches_played += 1
        entry.playing_time += player.playing_time_for_period(period)

    dropped = 0
    for event in record.events:
        if period is not None and event.period != period:
            continue
        player = roster.get(event.player_id) if event.player_id else None
        if player is None:
            dropped += 1
            continue
        entry = accumulator[resolver.key_for(player)]

        if event.is_opponent:
            if isinstance(event, OpponentShotEvent):
                _fold_opponent_shot(entry, event)
            continue

        if isinstance(event, ShotEvent):
            _fold_shot(entry, event)
        elif isinstance(event, TurnoverEvent):
            _fold_turnover(entry, event)
        elif isinstance(event, PositiveActionEvent):
            entry.increment(POSITIVE_ACTION_COUNTERS[event.action_type])
        elif isinstance(event, SanctionEvent):
            entry.increment(SANCTION_COUNTERS[event.sanction_type])
        elif isinstance(event, OpponentShotEvent):
            # Shots against us only count when flagged as the opponent's.
            continue
        else:
            dropped += 1
    if dropped:
        LOGGER.debug("Match %s: dropped %s events without a roster player", record.id, dropped)
    return dropped


def aggregate(
    summaries: Iterable[Union[MatchSummary, Mapping[str, Any]]],
    load_match: MatchLoader,
    weights: Union[RatingWeights, Mapping[str, Any]],
    *,
    team_name: Optional[str] = None,
    resolver: Optional[IdentityResolver] = None,
    fold_order: FoldOrder = "chronological",
    period: Optional[int] = None,
) -> AggregationResult:
    """
    Aggregate player statistics over the matches behind ``summaries``.

    ``load_match`` returns a ``MatchRecord`` (or its stored mapping) for a
    match id, or None when the match is unavailable; unavailable matches are
    skipped and do not count towards the win/draw/loss record. Matches are
    folded in ``fold_order``: ``"chronological"`` (oldest first) or
    ``"as_given"``. Later matches overwrite a player's name, number and
    position. ``period`` restricts events and playing time to one period.

    Rows come back ordered by jersey number; included matches most recent
    first.
    """
    rating_weights = _require_weights(weights)
    resolver = resolver or DEFAULT_RESOLVER
    ordered = order_summaries(_coerce_summaries(summaries), fold_order)

    accumulator: Dict[str, PlayerAggregate] = {}
    included: List[MatchSummary] = []
    tally = {"win": 0, "draw": 0, "loss": 0}
    skipped = 0

    for summary in ordered:
        record = _coerce_record(load_match(summary.id), summary.id)
        if record is None:
            skipped += 1
            LOGGER.warning("Skipping match %s: record not available", summary.id)
            continue
        included.append(summary)
        tally[match_outcome(record, team_name)] += 1
        _fold_match(record, accumulator, resolver, period)

    rows = list(accumulator.values())
    for row in rows:
        row.total_rating = compute_rating(row, rating_weights)
    rows.sort(key=lambda row: row.number)
    included.sort(key=lambda s: s.parsed_date or datetime.min, reverse=True)

    LOGGER.info(
        "Aggregated %s players over %s matches (%s skipped)",
        len(rows),
        len(included),
        skipped,
    )
    return AggregationResult(
        rows=tuple(rows),
        included_matches=tuple(included),
        wins=tally["win"],
        draws=tally["draw"],
        losses=tally["loss"],
    )
