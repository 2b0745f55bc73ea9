"""
Match, roster and event models plus tolerant parsers for stored match documents.
"""
from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union

LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class Position(str, Enum):
    GK = "GK"
    LW = "LW"
    LB = "LB"
    CB = "CB"
    RB = "RB"
    RW = "RW"
    PV = "PV"
    STAFF = "STAFF"
    COACH = "COACH"

    @property
    def is_competing(self) -> bool:
        return self not in NON_COMPETING_POSITIONS


NON_COMPETING_POSITIONS = frozenset({Position.STAFF, Position.COACH})


class ShotZone(str, Enum):
    WING_L = "WING_L"
    WING_R = "WING_R"
    NINE_M_L = "NINE_M_L"
    NINE_M_C = "NINE_M_C"
    NINE_M_R = "NINE_M_R"
    SIX_M_L = "SIX_M_L"
    SIX_M_C = "SIX_M_C"
    SIX_M_R = "SIX_M_R"
    SEVEN_M = "SEVEN_M"
    FASTBREAK = "FASTBREAK"


class ShotOutcome(str, Enum):
    GOAL = "GOAL"
    SAVE = "SAVE"
    POST = "POST"
    MISS = "MISS"
    BLOCK = "BLOCK"


class TurnoverType(str, Enum):
    PASS = "PASS"
    RECEPTION = "RECEPTION"
    STEPS = "STEPS"
    DOUBLE = "DOUBLE"
    LINE = "LINE"
    OFFENSIVE_FOUL = "OFFENSIVE_FOUL"


class PositiveActionType(str, Enum):
    ASSIST = "ASSIST"
    OFFENSIVE_BLOCK = "OFFENSIVE_BLOCK"
    FORCE_PENALTY = "FORCE_PENALTY"
    STEAL = "STEAL"
    GOOD_DEFENSE = "GOOD_DEFENSE"
    BLOCK_SHOT = "BLOCK_SHOT"


class SanctionType(str, Enum):
    YELLOW = "YELLOW"
    TWO_MIN = "TWO_MIN"
    RED = "RED"
    BLUE = "BLUE"


class EventKind(str, Enum):
    SHOT = "SHOT"
    OPPONENT_SHOT = "OPPONENT_SHOT"
    TURNOVER = "TURNOVER"
    POSITIVE_ACTION = "POSITIVE_ACTION"
    SANCTION = "SANCTION"


# Labels written by the original recorder app, keyed by canonical form.
_LEGACY_LABELS: Dict[Type[Enum], Dict[str, Enum]] = {
    ShotZone: {
        "extremo izq": ShotZone.WING_L,
        "extremo der": ShotZone.WING_R,
        "9m izq": ShotZone.NINE_M_L,
        "9m central": ShotZone.NINE_M_C,
        "9m der": ShotZone.NINE_M_R,
        "6m izq": ShotZone.SIX_M_L,
        "6m central": ShotZone.SIX_M_C,
        "6m der": ShotZone.SIX_M_R,
        "7m (penalti)": ShotZone.SEVEN_M,
        "contraataque": ShotZone.FASTBREAK,
    },
    ShotOutcome: {
        "gol": ShotOutcome.GOAL,
        "parada": ShotOutcome.SAVE,
        "poste": ShotOutcome.POST,
        "fuera": ShotOutcome.MISS,
        "bloqueado": ShotOutcome.BLOCK,
    },
    TurnoverType: {
        "pase": TurnoverType.PASS,
        "recepcion": TurnoverType.RECEPTION,
        "pasos": TurnoverType.STEPS,
        "dobles": TurnoverType.DOUBLE,
        "pisar": TurnoverType.LINE,
        "falta de ataque": TurnoverType.OFFENSIVE_FOUL,
    },
    PositiveActionType: {
        "asistencia": PositiveActionType.ASSIST,
        "bloqueo": PositiveActionType.OFFENSIVE_BLOCK,
        "fuerza 7m-2'": PositiveActionType.FORCE_PENALTY,
        "recuperacion": PositiveActionType.STEAL,
        "buena df": PositiveActionType.GOOD_DEFENSE,
        "blocaje": PositiveActionType.BLOCK_SHOT,
    },
    SanctionType: {
        "amarilla": SanctionType.YELLOW,
        "2 minutos": SanctionType.TWO_MIN,
        "roja": SanctionType.RED,
        "azul": SanctionType.BLUE,
    },
}

# Ordered substring rules for free text positions; first match wins.
_POSITION_RULES: Tuple[Tuple[Tuple[str, ...], Position], ...] = (
    (("portero", "goalkeeper", "keeper", "gk"), Position.GK),
    (("extremo izq", "left wing", "lw"), Position.LW),
    (("extremo der", "right wing", "rw"), Position.RW),
    (("lateral izq", "left back", "lb"), Position.LB),
    (("lateral der", "right back", "rb"), Position.RB),
    (("central", "centre back", "center back", "cb"), Position.CB),
    (("pivote", "pivot", "pv"), Position.PV),
    (("tecnico", "entrenador", "staff"), Position.STAFF),
    (("coach",), Position.COACH),
)


def _canonical(value: str) -> str:
    """
    Lowercase, collapse whitespace, and strip diacritics.
    """
    normalised = unicodedata.normalize("NFKD", value)
    cleaned = "".join(char for char in normalised if not unicodedata.combining(char))
    return " ".join(cleaned.casefold().split())


def parse_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    """
    Resolve ``value`` to a member of ``enum_cls`` by member name or legacy label.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    token = value.strip()
    try:
        return enum_cls[token.upper()]
    except KeyError:
        pass
    return _LEGACY_LABELS.get(enum_cls, {}).get(_canonical(token))  # type: ignore[return-value]


def position_from_label(label: Any) -> Position:
    """
    Map a stored or free text position to ``Position``; unknown labels become PV.
    """
    if isinstance(label, Position):
        return label
    if not isinstance(label, str) or not label.strip():
        return Position.PV
    try:
        return Position[label.strip().upper()]
    except KeyError:
        pass
    text = _canonical(label)
    for needles, position in _POSITION_RULES:
        if any(needle in text for needle in needles):
            return position
    return Position.PV


def _field(raw: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> Sequence[Any]:
    return value if isinstance(value, (list, tuple)) else ()


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().casefold() in ("true", "1", "yes")
    return False


def _to_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        text = str(value).strip()
        return text or None
    return None


def parse_match_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text[:10], "%Y-%m-%d")
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    number: int
    position: Position = Position.PV
    playing_time: float = 0.0
    playing_time_by_period: Mapping[int, float] = field(default_factory=dict)

    def playing_time_for_period(self, period: Optional[int]) -> float:
        """
        Seconds played in ``period``, or in the whole match when ``period`` is None.

        Older records only carry a match total; that time is attributed to
        period 1 when no per-period data was recorded at all.
        """
        if period is None:
            return self.playing_time
        per_period = self.playing_time_by_period
        if not per_period:
            return self.playing_time if period == 1 else 0.0
        return float(per_period.get(period, 0.0))

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Optional["Player"]:
        player_id = _to_str(_field(raw, "id"))
        if player_id is None:
            return None
        by_period: Dict[int, float] = {}
        raw_periods = _field(raw, "playing_time_by_period", "playingTimeByPeriod", default={})
        if isinstance(raw_periods, Mapping):
            for key, seconds in raw_periods.items():
                period = _to_int(key, default=-1)
                if period > 0:
                    by_period[period] = max(0.0, _to_float(seconds))
        return cls(
            id=player_id,
            name=str(_field(raw, "name", default="")),
            number=_to_int(_field(raw, "number")),
            position=position_from_label(_field(raw, "position")),
            playing_time=max(0.0, _to_float(_field(raw, "playing_time", "playingTime"))),
            playing_time_by_period=by_period,
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _BaseEvent:
    id: str = ""
    period: int = 1
    timestamp: float = 0.0
    player_id: Optional[str] = None
    is_opponent: bool = False


@dataclass(frozen=True)
class ShotEvent(_BaseEvent):
    kind: ClassVar[EventKind] = EventKind.SHOT
    outcome: Optional[ShotOutcome] = None
    zone: Optional[ShotZone] = None


@dataclass(frozen=True)
class OpponentShotEvent(_BaseEvent):
    """Shot taken against us; ``player_id`` is our defending goalkeeper."""

    kind: ClassVar[EventKind] = EventKind.OPPONENT_SHOT
    outcome: Optional[ShotOutcome] = None
    zone: Optional[ShotZone] = None


@dataclass(frozen=True)
class TurnoverEvent(_BaseEvent):
    kind: ClassVar[EventKind] = EventKind.TURNOVER
    turnover_type: Optional[TurnoverType] = None


@dataclass(frozen=True)
class PositiveActionEvent(_BaseEvent):
    kind: ClassVar[EventKind] = EventKind.POSITIVE_ACTION
    action_type: PositiveActionType = PositiveActionType.ASSIST


@dataclass(frozen=True)
class SanctionEvent(_BaseEvent):
    kind: ClassVar[EventKind] = EventKind.SANCTION
    sanction_type: SanctionType = SanctionType.YELLOW


MatchEvent = Union[
    ShotEvent,
    OpponentShotEvent,
    TurnoverEvent,
    PositiveActionEvent,
    SanctionEvent,
]


def parse_event(raw: Any) -> Optional[MatchEvent]:
    """
    Build a typed event from a stored event document.

    Returns None for events outside the statistics union (substitutions,
    timeouts) and for events missing the sub-type field their kind needs.
    """
    if not isinstance(raw, Mapping):
        return None
    kind = parse_enum(EventKind, _field(raw, "type", "kind"))
    if kind is None:
        return None

    common = {
        "id": _to_str(_field(raw, "id")) or "",
        "period": max(1, _to_int(_field(raw, "period"), default=1)),
        "timestamp": _to_float(_field(raw, "timestamp")),
        "player_id": _to_str(_field(raw, "player_id", "playerId")),
        "is_opponent": _to_bool(_field(raw, "is_opponent", "isOpponent")),
    }

    if kind in (EventKind.SHOT, EventKind.OPPONENT_SHOT):
        raw_outcome = _field(raw, "shot_outcome", "shotOutcome", "outcome")
        if raw_outcome is None:
            return None
        event_cls = ShotEvent if kind is EventKind.SHOT else OpponentShotEvent
        return event_cls(
            outcome=parse_enum(ShotOutcome, raw_outcome),
            zone=parse_enum(ShotZone, _field(raw, "shot_zone", "shotZone", "zone")),
            **common,
        )

    if kind is EventKind.TURNOVER:
        raw_type = _field(raw, "turnover_type", "turnoverType")
        if raw_type is None:
            return None
        return TurnoverEvent(turnover_type=parse_enum(TurnoverType, raw_type), **common)

    if kind is EventKind.POSITIVE_ACTION:
        action_type = parse_enum(
            PositiveActionType, _field(raw, "positive_action_type", "positiveActionType")
        )
        if action_type is None:
            return None
        return PositiveActionEvent(action_type=action_type, **common)

    sanction_type = parse_enum(SanctionType, _field(raw, "sanction_type", "sanctionType"))
    if sanction_type is None:
        return None
    return SanctionEvent(sanction_type=sanction_type, **common)


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchMetadata:
    id: str
    home_team: str
    away_team: str
    date: str = ""
    location: str = ""
    round: str = ""
    category: Optional[str] = None
    owner_team_id: Optional[str] = None
    is_our_team_home: Optional[bool] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MatchMetadata":
        match_id = _to_str(_field(raw, "id"))
        if match_id is None:
            raise ValueError("Match metadata is missing an id")
        is_home = _field(raw, "is_our_team_home", "isOurTeamHome")
        return cls(
            id=match_id,
            home_team=str(_field(raw, "home_team", "homeTeam", default="")),
            away_team=str(_field(raw, "away_team", "awayTeam", default="")),
            date=str(_field(raw, "date", default="")),
            location=str(_field(raw, "location", default="")),
            round=str(_field(raw, "round", default="")),
            category=_to_str(_field(raw, "category")),
            owner_team_id=_to_str(_field(raw, "owner_team_id", "ownerTeamId", "teamId")),
            is_our_team_home=is_home if isinstance(is_home, bool) else None,
        )


@dataclass(frozen=True)
class MatchRecord:
    metadata: MatchMetadata
    home_score: int
    away_score: int
    players: Tuple[Player, ...] = ()
    events: Tuple[MatchEvent, ...] = ()

    @property
    def id(self) -> str:
        return self.metadata.id

    def is_home(self, team_name: Optional[str] = None) -> bool:
        """
        Whether our team played at home, preferring the explicit side flag.
        """
        if self.metadata.is_our_team_home is not None:
            return self.metadata.is_our_team_home
        return self.metadata.home_team == team_name

    def roster_index(self) -> Dict[str, Player]:
        index: Dict[str, Player] = {}
        for player in self.players:
            index.setdefault(player.id, player)
        return index

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MatchRecord":
        """
        Parse a stored match document; raises ValueError when it has no metadata id.
        """
        metadata_raw = _field(raw, "metadata", default={})
        if not isinstance(metadata_raw, Mapping):
            raise ValueError("Match metadata must be a mapping")
        metadata = MatchMetadata.from_dict(metadata_raw)

        players: List[Player] = []
        for item in _as_list(_field(raw, "players")):
            player = Player.from_dict(item) if isinstance(item, Mapping) else None
            if player is not None:
                players.append(player)

        events: List[MatchEvent] = []
        dropped = 0
        for item in _as_list(_field(raw, "events")):
            event = parse_event(item)
            if event is None:
                dropped += 1
                continue
            events.append(event)
        if dropped:
            LOGGER.debug("Match %s: skipped %s non-statistical or malformed events", metadata.id, dropped)

        return cls(
            metadata=metadata,
            home_score=_to_int(_field(raw, "home_score", "homeScore")),
            away_score=_to_int(_field(raw, "away_score", "awayScore")),
            players=tuple(players),
            events=tuple(events),
        )


@dataclass(frozen=True)
class MatchSummary:
    id: str
    date: str
    home_team: str
    away_team: str
    home_score: int = 0
    away_score: int = 0
    owner_team_id: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None

    @property
    def parsed_date(self) -> Optional[datetime]:
        return parse_match_date(self.date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ownerTeamId": self.owner_team_id,
            "date": self.date,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "homeScore": self.home_score,
            "awayScore": self.away_score,
            "location": self.location,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Optional["MatchSummary"]:
        match_id = _to_str(_field(raw, "id"))
        if match_id is None:
            return None
        return cls(
            id=match_id,
            date=str(_field(raw, "date", default="")),
            home_team=str(_field(raw, "home_team", "homeTeam", default="")),
            away_team=str(_field(raw, "away_team", "awayTeam", default="")),
            home_score=_to_int(_field(raw, "home_score", "homeScore")),
            away_score=_to_int(_field(raw, "away_score", "awayScore")),
            owner_team_id=_to_str(_field(raw, "owner_team_id", "ownerTeamId", "teamId")),
            location=_to_str(_field(raw, "location")),
            category=_to_str(_field(raw, "category")),
        )

    @classmethod
    def from_record(cls, record: MatchRecord) -> "MatchSummary":
        meta = record.metadata
        return cls(
            id=meta.id,
            date=meta.date,
            home_team=meta.home_team,
            away_team=meta.away_team,
            home_score=record.home_score,
            away_score=record.away_score,
            owner_team_id=meta.owner_team_id,
            location=meta.location or None,
            category=meta.category,
        )
