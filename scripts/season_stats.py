#!/usr/bin/env python
"""
CLI entrypoint to print season player statistics for one team.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from courtstats.analytics import SORT_KEYS, SortState, StatsView, aggregate, view_frame
from courtstats.config import StatsSettings, load_rating_weights
from courtstats.exceptions import CourtStatsError
from courtstats.services.data_fetch import prefetch_matches
from courtstats.store import MatchStore


LOGGER = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Aggregate recorded matches into a season player table.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory holding index.json and the matches/ folder (defaults to COURTSTATS_DATA_DIR).",
    )
    parser.add_argument(
        "--weights",
        type=str,
        help="Path to the rating weights YAML (defaults to COURTSTATS_RATING_WEIGHTS).",
    )
    parser.add_argument("--team-id", type=str, help="Only include matches owned by this team id.")
    parser.add_argument(
        "--team-name",
        type=str,
        help="Team name used to find our side when a match does not record it.",
    )
    parser.add_argument(
        "--view",
        choices=[view.value for view in StatsView],
        default=StatsView.GENERAL.value,
    )
    parser.add_argument("--sort", choices=sorted(SORT_KEYS), default="rating")
    parser.add_argument("--direction", choices=("asc", "desc"), default="desc")
    parser.add_argument("--period", type=int, help="Restrict statistics to a single period.")
    parser.add_argument(
        "--fold-order",
        choices=("chronological", "as_given"),
        default="chronological",
        help="Order in which matches are folded; later matches overwrite player names and positions.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Concurrent match loads (defaults to COURTSTATS_PREFETCH_WORKERS).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")

    settings = StatsSettings.from_env()
    weights_path = Path(args.weights or settings.rating_weights_path)
    LOGGER.info("Loading rating weights from %s", weights_path)
    try:
        weights = load_rating_weights(weights_path)
    except (FileNotFoundError, CourtStatsError) as exc:
        LOGGER.error("Cannot load rating weights: %s", exc)
        return 1

    store = MatchStore(args.data_dir or settings.data_dir)
    summaries = store.list_match_summaries(args.team_id)
    workers = args.workers or settings.prefetch_workers
    records = prefetch_matches(summaries, store.load_full_match, max_workers=workers)
    result = aggregate(
        summaries,
        records.get,
        weights,
        team_name=args.team_name,
        fold_order=args.fold_order,
        period=args.period,
    )

    print(
        f"Matches: {result.matches}  W {result.wins} / D {result.draws} / L {result.losses}"
        f"  win rate {result.win_rate:.0%}  goals/match {result.goals_per_match:.1f}"
        f"  saves/match {result.saves_per_match:.1f}"
    )
    frame = view_frame(result.rows, args.view, SortState(args.sort, args.direction))
    if frame.empty:
        print("No players to show.")
    else:
        print(frame.to_string(index=False, float_format=lambda value: f"{value:.2f}"))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
