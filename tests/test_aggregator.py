from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from courtstats.analytics import aggregate, compute_rating, match_outcome, order_summaries
from courtstats.analytics.aggregator import BUCKET_NAMES
from courtstats.config import RatingWeights
from courtstats.exceptions import RatingConfigError
from courtstats.models import MatchRecord, MatchSummary, Position

WEIGHTS = RatingWeights.from_mapping(
    {
        "GOAL": 4,
        "MISS": -1,
        "ASSIST": 2,
        "STEAL": 3,
        "BLOCK": 3,
        "EARNED_7M": 2,
        "GOOD_ID": 1,
        "TURNOVER": -2,
        "YELLOW": -1,
        "TWO_MIN": -3,
        "RED": -6,
        "BLUE": -10,
        "SAVE": 3,
        "GOAL_CONCEDED": -0.5,
    }
)


def _player(player_id: str, number: int, name: str, position: str = "CB", seconds: float = 0) -> dict:
    return {"id": player_id, "number": number, "name": name, "position": position, "playingTime": seconds}


def _shot(player_id: str, outcome: str, zone: Optional[str] = None, **extra) -> dict:
    event = {"type": "SHOT", "playerId": player_id, "shotOutcome": outcome}
    if zone:
        event["shotZone"] = zone
    event.update(extra)
    return event


def _match(
    match_id: str,
    date: str,
    players: List[dict],
    events: List[dict],
    *,
    home_score: int = 25,
    away_score: int = 20,
    home: Optional[bool] = True,
) -> dict:
    metadata = {"id": match_id, "homeTeam": "Sanse", "awayTeam": "Rival", "date": date}
    if home is not None:
        metadata["isOurTeamHome"] = home
    return {
        "metadata": metadata,
        "homeScore": home_score,
        "awayScore": away_score,
        "players": players,
        "events": events,
    }


class _Library:
    """In-memory match loader keyed by id; missing ids load as None."""

    def __init__(self, documents: List[dict], missing: tuple = ()):
        self.records: Dict[str, MatchRecord] = {
            doc["metadata"]["id"]: MatchRecord.from_dict(doc) for doc in documents
        }
        self.missing = set(missing)
        self.calls: List[str] = []

    def summaries(self, extra_ids: tuple = ()) -> List[MatchSummary]:
        items = [MatchSummary.from_record(record) for record in self.records.values()]
        for match_id in extra_ids:
            items.append(MatchSummary(id=match_id, date="2024-02-01", home_team="Sanse", away_team="Ghost"))
        return items

    def load(self, match_id: str) -> Optional[MatchRecord]:
        self.calls.append(match_id)
        if match_id in self.missing:
            return None
        return self.records.get(match_id)


def _ana_documents() -> List[dict]:
    first = _match(
        "m1",
        "2024-01-10",
        [_player("p1", 7, "Ana", "LB", 1800), _player("p2", 12, "Bea", "GK", 3600)],
        [
            _shot("p1", "GOAL", "SIX_M_L"),
            _shot("p1", "GOAL", "SIX_M_C"),
            _shot("p1", "GOAL", "WING_L"),
            _shot("p1", "MISS", "NINE_M_C"),
            _shot("p1", "SAVE"),
        ],
    )
    second = _match(
        "m2",
        "2024-01-17",
        [_player("x9", 7, "  ana ", "LB", 1200)],
        [
            {"type": "TURNOVER", "playerId": "x9", "turnoverType": "PASS"},
            {"type": "SANCTION", "playerId": "x9", "sanctionType": "TWO_MIN"},
        ],
        home_score=20,
        away_score=20,
    )
    return [first, second]


def _ana_library() -> _Library:
    return _Library(_ana_documents())


def _row(result, key):
    matches = [row for row in result.rows if row.key == key]
    assert len(matches) == 1, f"expected one row for {key}"
    return matches[0]


def test_same_player_merges_across_matches():
    library = _ana_library()
    result = aggregate(library.summaries(), library.load, WEIGHTS, team_name="Sanse")

    ana = _row(result, "7-ana")
    assert ana.matches_played == 2
    assert ana.playing_time == 3000
    assert ana.goals == 3
    assert ana.total_shots == 5
    assert ana.turnovers == 1
    assert ana.turnover_pass == 1
    assert ana.two_min == 1
    assert ana.total_rating == 3 * 4 + 2 * -1 + 1 * -2 + 1 * -3
    assert ana.average_rating == pytest.approx(ana.total_rating / 2)


def test_untagged_shot_counts_in_total_but_no_zone_bucket():
    library = _ana_library()
    ana = _row(aggregate(library.summaries(), library.load, WEIGHTS), "7-ana")

    assert (ana.six_m.goals, ana.six_m.total) == (2, 2)
    assert (ana.wing.goals, ana.wing.total) == (1, 1)
    assert (ana.nine_m.goals, ana.nine_m.total) == (0, 1)
    assert ana.seven_m.total == 0
    assert ana.fastbreak.total == 0
    assert sum(ana.bucket(name).total for name in BUCKET_NAMES) == 4 < ana.total_shots


def test_name_position_overwritten_by_latest_match_in_fold_order():
    library = _ana_library()
    summaries = list(reversed(library.summaries()))

    chronological = _row(aggregate(summaries, library.load, WEIGHTS), "7-ana")
    assert chronological.name == "  ana "

    as_given = _row(aggregate(summaries, library.load, WEIGHTS, fold_order="as_given"), "7-ana")
    assert as_given.name == "Ana"
    assert as_given.player_id == "x9"


def test_unknown_fold_order_is_rejected():
    library = _ana_library()
    with pytest.raises(ValueError):
        aggregate(library.summaries(), library.load, WEIGHTS, fold_order="random")  # type: ignore[arg-type]


def test_missing_match_is_skipped_entirely():
    ghost = _match(
        "m3",
        "2024-01-24",
        [_player("g1", 99, "Ghost", "PV")],
        [_shot("g1", "GOAL", "SIX_M_C")],
    )
    library = _Library(_ana_documents() + [ghost], missing=("m3",))
    result = aggregate(library.summaries(), library.load, WEIGHTS)

    assert len(result.included_matches) == 2
    assert result.wins + result.draws + result.losses == 2
    assert all(row.number != 99 for row in result.rows)
    assert "m3" not in {summary.id for summary in result.included_matches}
    assert sorted(library.calls) == ["m1", "m2", "m3"]


def test_summary_without_loadable_record_is_tolerated():
    library = _ana_library()
    result = aggregate(library.summaries(extra_ids=("nowhere",)), library.load, WEIGHTS)
    assert result.matches == 2


def test_win_draw_loss_uses_side_flag_then_team_name():
    away_win = _match("a", "2024-01-01", [], [], home_score=18, away_score=22, home=False)
    home_loss = _match("b", "2024-01-02", [], [], home_score=18, away_score=22, home=None)
    draw = _match("c", "2024-01-03", [], [], home_score=22, away_score=22, home=None)
    library = _Library([away_win, home_loss, draw])

    result = aggregate(library.summaries(), library.load, WEIGHTS, team_name="Sanse")
    assert (result.wins, result.draws, result.losses) == (1, 1, 1)

    # Without a team name the fallback cannot place us at home.
    result = aggregate(library.summaries(), library.load, WEIGHTS)
    assert (result.wins, result.draws, result.losses) == (2, 1, 0)


def test_match_outcome_helper():
    record = MatchRecord.from_dict(_match("x", "2024-01-01", [], [], home_score=30, away_score=29))
    assert match_outcome(record, None) == "win"


def test_opponent_events_never_count_as_our_offence():
    document = _match(
        "m1",
        "2024-01-10",
        [_player("f1", 9, "Carla", "RW"), _player("gk", 1, "Dani", "Portero")],
        [
            _shot("f1", "GOAL", "WING_R", isOpponent=True),
            {"type": "TURNOVER", "playerId": "f1", "turnoverType": "PASS", "isOpponent": True},
            {"type": "OPPONENT_SHOT", "playerId": "gk", "isOpponent": True, "shotOutcome": "SAVE"},
            {"type": "OPPONENT_SHOT", "playerId": "gk", "isOpponent": True, "shotOutcome": "GOAL"},
            {"type": "OPPONENT_SHOT", "playerId": "gk", "isOpponent": True, "shotOutcome": "GOAL"},
            {"type": "OPPONENT_SHOT", "playerId": "gk", "isOpponent": True, "shotOutcome": "POST"},
            {"type": "OPPONENT_SHOT", "playerId": "gk", "shotOutcome": "SAVE"},
            {"type": "OPPONENT_SHOT", "isOpponent": True, "shotOutcome": "GOAL"},
        ],
    )
    library = _Library([document])
    result = aggregate(library.summaries(), library.load, WEIGHTS)

    carla = _row(result, "9-carla")
    assert carla.total_shots == 0
    assert carla.goals == 0
    assert carla.turnovers == 0

    dani = _row(result, "1-dani")
    assert dani.position is Position.GK
    assert dani.saves == 1
    assert dani.goals_against == 2
    assert dani.total_rating == pytest.approx(1 * 3 + 2 * -0.5)


def test_goalkeeping_terms_only_rate_goalkeepers():
    document = _match(
        "m1",
        "2024-01-10",
        [_player("f1", 9, "Carla", "RW")],
        [{"type": "OPPONENT_SHOT", "playerId": "f1", "isOpponent": True, "shotOutcome": "SAVE"}],
    )
    library = _Library([document])
    carla = _row(aggregate(library.summaries(), library.load, WEIGHTS), "9-carla")
    assert carla.saves == 1
    assert carla.total_rating == 0


def test_goalkeeper_without_shots_has_zero_save_percentage():
    document = _match("m1", "2024-01-10", [_player("gk", 1, "Dani", "GK")], [])
    library = _Library([document])
    dani = _row(aggregate(library.summaries(), library.load, WEIGHTS), "1-dani")
    assert dani.save_percentage == 0.0
    assert dani.shot_percentage == 0.0


def test_malformed_events_are_dropped_without_side_effects():
    document = _match(
        "m1",
        "2024-01-10",
        [_player("p1", 7, "Ana")],
        [
            {"type": "SANCTION", "playerId": "p1"},
            {"type": "SHOT", "playerId": "p1"},
            _shot("nobody", "GOAL", "SIX_M_C"),
            _shot(None, "GOAL"),  # type: ignore[arg-type]
            "not an event",
            {"type": "SUBSTITUTION", "playerInId": "p1"},
            {"type": "TURNOVER", "playerId": "p1", "turnoverType": "Mystery"},
            {"type": "POSITIVE_ACTION", "playerId": "p1", "positiveActionType": "Hug"},
        ],
    )
    library = _Library([document])
    ana = _row(aggregate(library.summaries(), library.load, WEIGHTS), "7-ana")

    assert ana.total_shots == 0
    assert ana.yellow + ana.two_min + ana.red + ana.blue == 0
    assert ana.turnovers == 1
    assert ana.turnover_pass + ana.turnover_reception + ana.turnover_steps == 0
    assert ana.assists + ana.steals + ana.blocks + ana.penalties + ana.good_defense == 0


def test_positive_actions_and_sanctions_route_to_one_counter():
    events = [
        {"type": "POSITIVE_ACTION", "playerId": "p1", "positiveActionType": kind}
        for kind in ("ASSIST", "Bloqueo", "STEAL", "BLOCK_SHOT", "FORCE_PENALTY", "GOOD_DEFENSE")
    ] + [
        {"type": "SANCTION", "playerId": "p1", "sanctionType": kind}
        for kind in ("YELLOW", "TWO_MIN", "TWO_MIN", "RED", "BLUE")
    ]
    library = _Library([_match("m1", "2024-01-10", [_player("p1", 7, "Ana")], events)])
    ana = _row(aggregate(library.summaries(), library.load, WEIGHTS), "7-ana")

    assert ana.assists == 2
    assert (ana.steals, ana.blocks, ana.penalties, ana.good_defense) == (1, 1, 1, 1)
    assert (ana.yellow, ana.two_min, ana.red, ana.blue) == (1, 2, 1, 1)


def test_total_shots_match_non_opponent_shot_events():
    documents = [
        _match(
            "m1",
            "2024-01-10",
            [_player("a", 3, "Eva"), _player("b", 4, "Fran")],
            [
                _shot("a", "GOAL", "FASTBREAK"),
                _shot("b", "POST", "SEVEN_M"),
                _shot("b", "GOAL", "SEVEN_M"),
                _shot("a", "GOAL", isOpponent=True),
            ],
        ),
        _match("m2", "2024-01-11", [_player("c", 3, "eva")], [_shot("c", "BLOCK", "NINE_M_R")]),
    ]
    library = _Library(documents)
    result = aggregate(library.summaries(), library.load, WEIGHTS)

    assert sum(row.total_shots for row in result.rows) == 4
    for row in result.rows:
        assert row.goals <= row.total_shots
        for name in BUCKET_NAMES:
            bucket = row.bucket(name)
            assert bucket.goals <= bucket.total
        assert sum(row.bucket(name).total for name in BUCKET_NAMES) <= row.total_shots


def test_rows_default_to_number_order_stable_on_creation():
    players = [
        _player("a", 10, "Zoe"),
        _player("b", 2, "Yara"),
        _player("c", 10, "Alba"),
        _player("d", 5, "Noa"),
    ]
    library = _Library([_match("m1", "2024-01-10", players, [])])
    result = aggregate(library.summaries(), library.load, WEIGHTS)
    assert [row.name for row in result.rows] == ["Yara", "Noa", "Zoe", "Alba"]


def test_duplicate_roster_entry_counts_one_appearance():
    players = [_player("a", 7, "Ana", seconds=600), _player("b", 7, "ANA", seconds=300)]
    library = _Library([_match("m1", "2024-01-10", players, [])])
    ana = _row(aggregate(library.summaries(), library.load, WEIGHTS), "7-ana")
    assert ana.matches_played == 1
    assert ana.playing_time == 600


def test_period_filter_restricts_events_and_time():
    player = _player("p1", 7, "Ana")
    player["playingTimeByPeriod"] = {"1": 900, "2": 600}
    player["playingTime"] = 1500
    events = [
        _shot("p1", "GOAL", "SIX_M_C", period=1),
        _shot("p1", "MISS", "WING_L", period=2),
        {"type": "TURNOVER", "playerId": "p1", "turnoverType": "STEPS", "period": 2},
    ]
    library = _Library([_match("m1", "2024-01-10", [player], events)])
    ana = _row(aggregate(library.summaries(), library.load, WEIGHTS, period=2), "7-ana")

    assert ana.playing_time == 600
    assert ana.total_shots == 1
    assert ana.goals == 0
    assert ana.turnover_steps == 1
    assert ana.matches_played == 1


def test_aggregate_is_idempotent():
    library = _ana_library()
    first = aggregate(library.summaries(), library.load, WEIGHTS)
    second = aggregate(library.summaries(), library.load, WEIGHTS)
    assert [row.to_dict() for row in first.rows] == [row.to_dict() for row in second.rows]
    assert first.included_matches == second.included_matches
    assert (first.wins, first.draws, first.losses) == (second.wins, second.draws, second.losses)


def test_included_matches_most_recent_first_and_team_figures():
    library = _ana_library()
    result = aggregate(library.summaries(), library.load, WEIGHTS, team_name="Sanse")

    assert [summary.id for summary in result.included_matches] == ["m2", "m1"]
    assert (result.wins, result.draws, result.losses) == (1, 1, 0)
    assert result.win_rate == 0.5
    assert result.goals_per_match == 1.5
    assert result.saves_per_match == 0.0


def test_accepts_mapping_summaries_and_loader_documents():
    document = _match("m1", "2024-01-10", [_player("p1", 7, "Ana")], [_shot("p1", "GOAL")])
    result = aggregate(
        [{"id": "m1", "date": "2024-01-10", "homeTeam": "Sanse", "awayTeam": "Rival"}],
        lambda match_id: document,
        WEIGHTS.as_dict(),
    )
    assert result.rows[0].goals == 1


def test_undated_summaries_fold_after_dated_ones():
    summaries = [
        MatchSummary(id="undated-a", date="", home_team="Sanse", away_team="Rival"),
        MatchSummary(id="late", date="2024-03-01", home_team="Sanse", away_team="Rival"),
        MatchSummary(id="undated-b", date="not a date", home_team="Sanse", away_team="Rival"),
        MatchSummary(id="early", date="2024-01-01", home_team="Sanse", away_team="Rival"),
    ]
    ordered = [summary.id for summary in order_summaries(summaries, "chronological")]
    assert ordered == ["early", "late", "undated-a", "undated-b"]


def test_out_of_range_fields_do_not_abort_aggregation():
    document = _match(
        "m1",
        "2024-01-10",
        [_player("p1", 7, "Ana")],
        [_shot("p1", "GOAL"), _shot("p1", "GOAL", period=float("inf"))],
        home_score=float("inf"),
    )
    result = aggregate(
        [{"id": "m1", "date": "2024-01-10", "homeTeam": "Sanse", "awayTeam": "Rival"}],
        lambda match_id: document,
        WEIGHTS,
    )
    assert result.matches == 1
    assert result.rows[0].goals == 2


def test_loader_document_with_scalar_roster_is_tolerated():
    document = {"metadata": {"id": "m1", "isOurTeamHome": True}, "players": 5, "events": 3}
    summary = MatchSummary(id="m1", date="", home_team="Sanse", away_team="Rival")
    result = aggregate([summary], lambda match_id: document, WEIGHTS)
    assert result.matches == 1
    assert result.rows == ()


def test_string_false_opponent_flag_counts_as_our_shot():
    document = _match("m1", "2024-01-10", [_player("p1", 7, "Ana")], [_shot("p1", "GOAL", isOpponent="false")])
    result = aggregate(
        [{"id": "m1", "date": "2024-01-10", "homeTeam": "Sanse", "awayTeam": "Rival"}],
        lambda match_id: document,
        WEIGHTS,
    )
    assert result.rows[0].goals == 1
    assert result.rows[0].total_shots == 1


def test_empty_input_yields_empty_result():
    result = aggregate([], lambda match_id: None, WEIGHTS)
    assert result.rows == ()
    assert result.matches == 0
    assert result.win_rate == 0.0


@pytest.mark.parametrize("weights", [None, {"GOAL": 4}, "weights"])
def test_missing_weights_fail_before_loading(weights):
    library = _ana_library()
    with pytest.raises(RatingConfigError):
        aggregate(library.summaries(), library.load, weights)  # type: ignore[arg-type]
    assert library.calls == []


def test_custom_resolver_replaces_identity_key():
    class ById:
        def key_for(self, player):
            return player.id

    library = _ana_library()
    result = aggregate(library.summaries(), library.load, WEIGHTS, resolver=ById())
    assert {row.key for row in result.rows} == {"p1", "p2", "x9"}


def test_compute_rating_matches_stored_total():
    library = _ana_library()
    for row in aggregate(library.summaries(), library.load, WEIGHTS).rows:
        assert compute_rating(row, WEIGHTS) == row.total_rating
